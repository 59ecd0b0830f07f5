from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fishnet.config.defaults import DEFAULT_CONFIG
from fishnet.config.models import (
    ArbiterConfig,
    CalibrationConfig,
    ClassifierConfig,
    DetectorConfig,
    FallbackConfig,
    ModelEntryConfig,
    ModelsConfig,
    MonitoringConfig,
    OutputConfig,
    RuntimeConfig,
)

INPUT_SCALES = {"raw_0_255", "unit_0_1"}
CLASSIFIER_MODES = {"split", "multihead"}
MODEL_BACKENDS = {"auto", "onnx", "onnxruntime", "tflite"}


def _merge_dict(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def _lower_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_lower_keys(item) for item in obj]
    return obj


def _maybe_parse_simple_config(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        return json.loads(text)

    if suffix == ".toml":
        try:
            import tomllib
        except ImportError:  # pragma: no cover - Python < 3.11
            import tomli as tomllib  # type: ignore

        return tomllib.loads(text)

    if suffix in {".yaml", ".yml"}:
        import yaml

        loaded = yaml.safe_load(text)
        return loaded if loaded else {}

    raise RuntimeError(f"Unsupported config extension: {suffix}")


def _load_with_dynaconf(config_paths: list[Path]) -> dict[str, Any]:
    try:
        from dynaconf import Dynaconf
    except ImportError:
        return {}

    settings = Dynaconf(
        envvar_prefix="FISHNET",
        settings_files=[str(path) for path in config_paths if path.exists()],
        merge_enabled=True,
        environments=False,
        load_dotenv=True,
    )
    return _lower_keys(settings.as_dict())


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _resolve_repo_relative(path_value: str | None, repo_root: Path) -> str | None:
    if not path_value:
        return path_value
    p = Path(path_value)
    if p.is_absolute():
        return str(p)
    return str((repo_root / p).resolve())


def _unit_float(value: Any, name: str) -> float:
    result = float(value)
    if not 0.0 <= result <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {result}")
    return result


def _band(value: Any, name: str) -> list[float]:
    items = [float(v) for v in value]
    if len(items) != 2 or items[0] > items[1]:
        raise ValueError(f"{name} must be [low, high] with low <= high, got {items}")
    for item in items:
        _unit_float(item, name)
    return items


def _box(value: Any, name: str) -> list[float]:
    items = [_unit_float(v, name) for v in value]
    if len(items) != 4 or items[0] > items[2] or items[1] > items[3]:
        raise ValueError(f"{name} must be [y_min, x_min, y_max, x_max], got {items}")
    return items


def _model_entry(data: dict[str, Any], default: dict[str, Any], repo_root: Path, role: str) -> ModelEntryConfig:
    scale = str(data.get("input_scale", default["input_scale"])).lower()
    if scale not in INPUT_SCALES:
        raise ValueError(f"models.{role}.input_scale must be one of {sorted(INPUT_SCALES)}, got {scale}")
    backend = str(data.get("backend", default["backend"])).lower()
    if backend not in MODEL_BACKENDS:
        raise ValueError(f"models.{role}.backend must be one of {sorted(MODEL_BACKENDS)}, got {backend}")
    threads = data.get("num_threads", default["num_threads"])
    return ModelEntryConfig(
        path=_resolve_repo_relative(data.get("path", default["path"]), repo_root),
        backend=backend,
        input_size=max(32, int(data.get("input_size", default["input_size"]))),
        input_scale=scale,
        labels_path=_resolve_repo_relative(data.get("labels_path", default["labels_path"]), repo_root),
        output_order=[str(v) for v in data.get("output_order", default["output_order"]) or []],
        num_threads=int(threads) if threads else None,
    )


def _normalize(data: dict[str, Any], repo_root: Path) -> RuntimeConfig:
    models_data = data.get("models", {})
    detector_data = data.get("detector", {})
    classifier_data = data.get("classifier", {})
    arbiter_data = data.get("arbiter", {})
    calibration_data = arbiter_data.get("calibration", {})
    fallback_data = data.get("fallback", {})
    output_data = data.get("output", {})
    monitoring_data = data.get("monitoring", {})

    model_defaults = DEFAULT_CONFIG["models"]

    mode = str(classifier_data.get("mode", "split")).lower()
    if mode not in CLASSIFIER_MODES:
        raise ValueError(f"classifier.mode must be one of {sorted(CLASSIFIER_MODES)}, got {mode}")

    config = RuntimeConfig(
        models=ModelsConfig(
            detector=_model_entry(
                models_data.get("detector", {}), model_defaults["detector"], repo_root, "detector"
            ),
            classifier=_model_entry(
                models_data.get("classifier", {}), model_defaults["classifier"], repo_root, "classifier"
            ),
            species=_model_entry(
                models_data.get("species", {}), model_defaults["species"], repo_root, "species"
            ),
            disease=_model_entry(
                models_data.get("disease", {}), model_defaults["disease"], repo_root, "disease"
            ),
            load_workers=max(1, int(models_data.get("load_workers", 3))),
        ),
        detector=DetectorConfig(
            score_threshold=_unit_float(
                detector_data.get("score_threshold", 0.25), "detector.score_threshold"
            ),
            num_classes=max(1, int(detector_data.get("num_classes", 7))),
            num_anchors=max(1, int(detector_data.get("num_anchors", 2100))),
            normalized_cutoff=float(detector_data.get("normalized_cutoff", 1.5)),
            max_detection_count=max(0, int(detector_data.get("max_detection_count", 50))),
            default_box=_box(
                detector_data.get("default_box", [0.1, 0.1, 0.9, 0.9]), "detector.default_box"
            ),
        ),
        classifier=ClassifierConfig(
            mode=mode,
            crop_size=max(32, int(classifier_data.get("crop_size", 224))),
            freshness_threshold=_unit_float(
                classifier_data.get("freshness_threshold", 0.5), "classifier.freshness_threshold"
            ),
            default_freshness_score=_unit_float(
                classifier_data.get("default_freshness_score", 0.95),
                "classifier.default_freshness_score",
            ),
            default_freshness_label=str(classifier_data.get("default_freshness_label", "Fresh")),
        ),
        arbiter=ArbiterConfig(
            background_label=str(arbiter_data.get("background_label", "wild_fish_background")),
            background_override_threshold=_unit_float(
                arbiter_data.get("background_override_threshold", 0.05),
                "arbiter.background_override_threshold",
            ),
            strict_background_rescue=_coerce_bool(
                arbiter_data.get("strict_background_rescue", False)
            ),
            rescue_labels=[str(v) for v in arbiter_data.get("rescue_labels", [])],
            rescue_min_score=_unit_float(
                arbiter_data.get("rescue_min_score", 0.02), "arbiter.rescue_min_score"
            ),
            confusable_labels=[str(v) for v in arbiter_data.get("confusable_labels", [])],
            confusable_max_score=_unit_float(
                arbiter_data.get("confusable_max_score", 0.50), "arbiter.confusable_max_score"
            ),
            confusable_alternatives=[
                str(v) for v in arbiter_data.get("confusable_alternatives", [])
            ],
            confusable_min_alternative_score=_unit_float(
                arbiter_data.get("confusable_min_alternative_score", 0.05),
                "arbiter.confusable_min_alternative_score",
            ),
            healthy_label=str(arbiter_data.get("healthy_label", "healthy")),
            class_a_label=str(arbiter_data.get("class_a_label", "black_gill_disease")),
            class_a_threshold=_unit_float(
                arbiter_data.get("class_a_threshold", 0.40), "arbiter.class_a_threshold"
            ),
            class_b_label=str(arbiter_data.get("class_b_label", "white_spot_virus")),
            class_b_threshold=_unit_float(
                arbiter_data.get("class_b_threshold", 0.30), "arbiter.class_b_threshold"
            ),
            disease_display_names={
                str(k): str(v)
                for k, v in arbiter_data.get("disease_display_names", {}).items()
            },
            calibration=CalibrationConfig(
                enabled=_coerce_bool(calibration_data.get("enabled", True)),
                low_floor=_unit_float(
                    calibration_data.get("low_floor", 0.80), "arbiter.calibration.low_floor"
                ),
                low_band=_band(
                    calibration_data.get("low_band", [0.82, 0.90]), "arbiter.calibration.low_band"
                ),
                high_ceiling=_unit_float(
                    calibration_data.get("high_ceiling", 0.98), "arbiter.calibration.high_ceiling"
                ),
                high_band=_band(
                    calibration_data.get("high_band", [0.94, 0.97]),
                    "arbiter.calibration.high_band",
                ),
            ),
        ),
        fallback=FallbackConfig(
            species_name=str(fallback_data.get("species_name", "rohu")),
            species_confidence=float(fallback_data.get("species_confidence", 94.5)),
            freshness_score=_unit_float(
                fallback_data.get("freshness_score", 0.92), "fallback.freshness_score"
            ),
            freshness_label=str(fallback_data.get("freshness_label", "Fresh")),
            disease_name=str(fallback_data.get("disease_name", "Healthy")),
            disease_confidence=float(fallback_data.get("disease_confidence", 98.0)),
            box=_box(fallback_data.get("box", [0.15, 0.15, 0.85, 0.85]), "fallback.box"),
        ),
        output=OutputConfig(
            event_stdout=_coerce_bool(output_data.get("event_stdout", True)),
            event_file=_resolve_repo_relative(output_data.get("event_file"), repo_root),
            annotate_dir=_resolve_repo_relative(output_data.get("annotate_dir"), repo_root),
        ),
        monitoring=MonitoringConfig(
            json_logs=_coerce_bool(monitoring_data.get("json_logs", False)),
            log_level=str(monitoring_data.get("log_level", "INFO")).upper(),
            stats_interval_seconds=float(monitoring_data.get("stats_interval_seconds", 5.0)),
            prometheus_enabled=_coerce_bool(monitoring_data.get("prometheus_enabled", False)),
            prometheus_host=str(monitoring_data.get("prometheus_host", "0.0.0.0")),
            prometheus_port=int(monitoring_data.get("prometheus_port", 9109)),
        ),
        seed=int(data["seed"]) if data.get("seed") is not None else None,
    )

    calibration = config.arbiter.calibration
    if calibration.low_floor > calibration.high_ceiling:
        raise ValueError("arbiter.calibration.low_floor must not exceed high_ceiling")

    return config


def _default_config_copy() -> dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_CONFIG))


def load_runtime_config(
    repo_root: Path,
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> RuntimeConfig:
    config_paths: list[Path] = []
    if config_path:
        config_paths.append(Path(config_path))
    else:
        for name in (
            "fishnet.toml",
            "fishnet.yaml",
            "fishnet.yml",
            "fishnet.json",
            "settings.toml",
            "settings.yaml",
            "settings.yml",
            "settings.json",
        ):
            candidate = repo_root / name
            if candidate.exists():
                config_paths.append(candidate)

    for path in config_paths:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

    merged = _default_config_copy()

    dynaconf_data = _load_with_dynaconf(config_paths)
    if dynaconf_data:
        _merge_dict(merged, dynaconf_data)
    else:
        for path in config_paths:
            _merge_dict(merged, _lower_keys(_maybe_parse_simple_config(path)))

    if cli_overrides:
        _merge_dict(merged, _lower_keys(cli_overrides))

    return _normalize(merged, repo_root)


def runtime_config_to_dict(config: RuntimeConfig) -> dict[str, Any]:
    return asdict(config)
