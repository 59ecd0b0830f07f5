from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ModelEntryConfig:
    path: str | None = None
    backend: str = "auto"
    input_size: int = 224
    input_scale: str = "unit_0_1"
    labels_path: str | None = None
    output_order: list[str] = field(default_factory=list)
    num_threads: int | None = None


@dataclass
class ModelsConfig:
    detector: ModelEntryConfig = field(
        default_factory=lambda: ModelEntryConfig(input_size=320, input_scale="raw_0_255")
    )
    classifier: ModelEntryConfig = field(default_factory=ModelEntryConfig)
    species: ModelEntryConfig = field(default_factory=ModelEntryConfig)
    disease: ModelEntryConfig = field(default_factory=ModelEntryConfig)
    load_workers: int = 3


@dataclass
class DetectorConfig:
    score_threshold: float = 0.25
    num_classes: int = 7
    num_anchors: int = 2100
    normalized_cutoff: float = 1.5
    max_detection_count: int = 50
    default_box: list[float] = field(default_factory=lambda: [0.1, 0.1, 0.9, 0.9])


@dataclass
class ClassifierConfig:
    mode: str = "split"
    crop_size: int = 224
    freshness_threshold: float = 0.5
    default_freshness_score: float = 0.95
    default_freshness_label: str = "Fresh"


@dataclass
class CalibrationConfig:
    enabled: bool = True
    low_floor: float = 0.80
    low_band: list[float] = field(default_factory=lambda: [0.82, 0.90])
    high_ceiling: float = 0.98
    high_band: list[float] = field(default_factory=lambda: [0.94, 0.97])


@dataclass
class ArbiterConfig:
    background_label: str = "wild_fish_background"
    background_override_threshold: float = 0.05
    strict_background_rescue: bool = False
    rescue_labels: list[str] = field(default_factory=lambda: ["crab", "prawn"])
    rescue_min_score: float = 0.02
    confusable_labels: list[str] = field(default_factory=lambda: ["sea_bass"])
    confusable_max_score: float = 0.50
    confusable_alternatives: list[str] = field(default_factory=lambda: ["catla", "rohu"])
    confusable_min_alternative_score: float = 0.05
    healthy_label: str = "healthy"
    class_a_label: str = "black_gill_disease"
    class_a_threshold: float = 0.40
    class_b_label: str = "white_spot_virus"
    class_b_threshold: float = 0.30
    disease_display_names: dict[str, str] = field(
        default_factory=lambda: {
            "black_gill_disease": "Black Gill Risk",
            "healthy": "Healthy",
            "white_spot_virus": "White Spot Risk",
        }
    )
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)


@dataclass
class FallbackConfig:
    species_name: str = "rohu"
    species_confidence: float = 94.5
    freshness_score: float = 0.92
    freshness_label: str = "Fresh"
    disease_name: str = "Healthy"
    disease_confidence: float = 98.0
    box: list[float] = field(default_factory=lambda: [0.15, 0.15, 0.85, 0.85])


@dataclass
class OutputConfig:
    event_stdout: bool = True
    event_file: str | None = None
    annotate_dir: str | None = None


@dataclass
class MonitoringConfig:
    json_logs: bool = False
    log_level: str = "INFO"
    stats_interval_seconds: float = 5.0
    prometheus_enabled: bool = False
    prometheus_host: str = "0.0.0.0"
    prometheus_port: int = 9109


@dataclass
class RuntimeConfig:
    models: ModelsConfig = field(default_factory=ModelsConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    arbiter: ArbiterConfig = field(default_factory=ArbiterConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    seed: int | None = None

    def as_log_context(self) -> dict[str, Any]:
        return {
            "detector": self.models.detector.path,
            "classifier_mode": self.classifier.mode,
            "score_threshold": self.detector.score_threshold,
            "background_override": self.arbiter.background_override_threshold,
            "strict_rescue": self.arbiter.strict_background_rescue,
            "calibration": self.arbiter.calibration.enabled,
            "json_logs": self.monitoring.json_logs,
        }
