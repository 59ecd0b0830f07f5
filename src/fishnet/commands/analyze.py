from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import cv2

from fishnet.config.loader import load_runtime_config
from fishnet.inference.errors import LoadError
from fishnet.monitoring import (
    InferenceMetrics,
    PeriodicStatsLogger,
    RuntimeIdentity,
    configure_logging,
)


def _clean_overrides(payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            nested = _clean_overrides(value)
            if nested:
                cleaned[key] = nested
            continue
        if value is not None:
            cleaned[key] = value
    return cleaned


def build_analyze_overrides(args: Any) -> dict[str, Any]:
    overrides = {
        "models": {
            "detector": {"path": args.detector_path},
            "classifier": {"path": args.classifier_path},
            "species": {"path": args.species_path},
            "disease": {"path": args.disease_path},
        },
        "classifier": {
            "mode": args.classifier_mode,
        },
        "output": {
            "event_stdout": (False if args.no_event_stdout else None),
            "event_file": args.event_file,
            "annotate_dir": args.annotate_dir,
        },
        "monitoring": {
            "json_logs": (True if args.json_logs else None),
            "log_level": args.log_level,
            "prometheus_enabled": (True if args.prometheus else None),
        },
        "seed": args.seed,
    }
    return _clean_overrides(overrides)


def _backend_name(handle) -> str:
    return handle.name() if handle is not None else "none"


def run_analyze(args: Any, repo_root: Path) -> int:
    config = load_runtime_config(
        repo_root=repo_root,
        config_path=args.config,
        cli_overrides=build_analyze_overrides(args),
    )
    configure_logging(
        level=config.monitoring.log_level,
        json_logs=config.monitoring.json_logs,
    )
    logger = logging.getLogger("fishnet.analyze")
    logger.info("starting analyze with config=%s", config.as_log_context())

    try:
        from fishnet.inference.provider import ModelProvider
        from fishnet.io.ingest import frame_from_bgr, iter_image_paths, read_bgr
        from fishnet.io.output import JsonEventSink, analysis_event
        from fishnet.pipeline.annotate import draw_result_overlay
        from fishnet.pipeline.runtime import FishAnalyzer
    except ModuleNotFoundError as exc:
        logger.error(
            "missing dependency: %s. Install requirements before running analyze.",
            exc.name,
        )
        return 2

    metrics = InferenceMetrics()
    if config.monitoring.prometheus_enabled:
        enabled = metrics.enable_prometheus(
            config.monitoring.prometheus_host,
            config.monitoring.prometheus_port,
        )
        if not enabled:
            logger.warning("prometheus requested but prometheus_client is not installed")

    provider = ModelProvider.from_config(config.models, config.classifier.mode)
    status = provider.load()
    if not status.ready:
        logger.error("model provider not ready: %s", status)
        return 3

    try:
        handles = provider.handles()
        analyzer = FishAnalyzer(provider, config, metrics=metrics)
        classifier_handle = handles.classifier or handles.species
        stats = PeriodicStatsLogger(
            metrics,
            RuntimeIdentity(
                detector_backend=_backend_name(handles.detector),
                classifier_backend=_backend_name(classifier_handle),
                classifier_mode=config.classifier.mode,
            ),
            interval_seconds=config.monitoring.stats_interval_seconds,
        )

        annotate_dir = Path(config.output.annotate_dir) if config.output.annotate_dir else None
        if annotate_dir is not None:
            annotate_dir.mkdir(parents=True, exist_ok=True)

        processed = 0
        with JsonEventSink(
            stdout_enabled=config.output.event_stdout,
            file_path=config.output.event_file,
        ) as sink:
            for path in iter_image_paths(args.image):
                try:
                    image_bgr = read_bgr(path)
                except ValueError as exc:
                    logger.warning("skipping unreadable image: %s", exc)
                    continue

                started = time.perf_counter()
                result = analyzer.analyze(frame_from_bgr(image_bgr, source=str(path)))
                latency_ms = (time.perf_counter() - started) * 1000.0
                processed += 1

                if sink.enabled():
                    sink.emit(analysis_event(result, source=str(path), latency_ms=latency_ms))
                if annotate_dir is not None:
                    overlay = draw_result_overlay(image_bgr, result)
                    target = annotate_dir / f"{path.stem}_annotated.jpg"
                    if not cv2.imwrite(str(target), overlay):
                        logger.warning("failed to write overlay %s", target)
                stats.maybe_emit()

        stats.maybe_emit(force=True)
        logger.info("analyze finished images=%d", processed)
        return 0 if processed else 1
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 2
    except LoadError as exc:
        logger.error("models unavailable: %s", exc)
        return 3
    finally:
        provider.release()
