from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass(frozen=True)
class Frame:
    """Immutable RGB uint8 pixel buffer for one inference call."""

    pixels: np.ndarray
    source: str = ""

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Frame expects (height, width, 3) pixels, got {pixels.shape}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError("Frame must be at least 1x1")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        pixels = np.array(pixels, copy=True)
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)


@dataclass(frozen=True)
class BoundingBox:
    """Normalized rectangle; every corner lies in [0, 1]."""

    y_min: float
    x_min: float
    y_max: float
    x_max: float

    @classmethod
    def clamped(cls, y_min: float, x_min: float, y_max: float, x_max: float) -> "BoundingBox":
        ys = sorted((_clamp01(y_min), _clamp01(y_max)))
        xs = sorted((_clamp01(x_min), _clamp01(x_max)))
        return cls(y_min=ys[0], x_min=xs[0], y_max=ys[1], x_max=xs[1])

    def as_list(self) -> list[float]:
        return [self.y_min, self.x_min, self.y_max, self.x_max]

    def to_dict(self) -> dict[str, float]:
        return {
            "yMin": self.y_min,
            "xMin": self.x_min,
            "yMax": self.y_max,
            "xMax": self.x_max,
        }


def _clamp01(value: float) -> float:
    value = float(value)
    if value != value:  # NaN
        return 0.0
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class DetectionOutcome:
    box: BoundingBox
    detection_count: int
    best_score: float
    detected: bool


@dataclass
class ClassifierOutputs:
    species: np.ndarray
    disease: np.ndarray
    freshness: float | None = None


@dataclass(frozen=True)
class SpeciesVerdict:
    name: str
    confidence: float


@dataclass(frozen=True)
class FreshnessVerdict:
    score: float
    label: str


@dataclass(frozen=True)
class DiseaseVerdict:
    name: str
    has_disease: bool
    confidence: float


@dataclass(frozen=True)
class AnalysisResult:
    """Final output of one analysis call; confidences are percentages."""

    species: SpeciesVerdict
    freshness: FreshnessVerdict
    disease: DiseaseVerdict
    bounding_box: BoundingBox

    def to_dict(self) -> dict[str, Any]:
        return {
            "species": {
                "name": self.species.name,
                "confidence": self.species.confidence,
            },
            "freshness": {
                "score": self.freshness.score,
                "label": self.freshness.label,
            },
            "disease": {
                "name": self.disease.name,
                "hasDisease": self.disease.has_disease,
                "confidence": self.disease.confidence,
            },
            "boundingBox": self.bounding_box.to_dict(),
        }
