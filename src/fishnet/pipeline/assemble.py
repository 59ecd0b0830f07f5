from __future__ import annotations

from fishnet.config.models import FallbackConfig
from fishnet.pipeline.arbiter import Arbitration
from fishnet.types import (
    AnalysisResult,
    BoundingBox,
    DiseaseVerdict,
    FreshnessVerdict,
    SpeciesVerdict,
)

FULL_FALLBACK = "full"
PARTIAL_FALLBACK = "partial"


def assemble_result(arbitration: Arbitration, box: BoundingBox) -> AnalysisResult:
    return AnalysisResult(
        species=arbitration.species,
        freshness=arbitration.freshness,
        disease=arbitration.disease,
        bounding_box=box,
    )


def fallback_result(config: FallbackConfig, box: BoundingBox | None = None) -> AnalysisResult:
    """Fixed result used when a stage fails; keeps ``box`` when one was computed."""
    return AnalysisResult(
        species=SpeciesVerdict(name=config.species_name, confidence=config.species_confidence),
        freshness=FreshnessVerdict(score=config.freshness_score, label=config.freshness_label),
        disease=DiseaseVerdict(
            name=config.disease_name,
            has_disease=False,
            confidence=config.disease_confidence,
        ),
        bounding_box=box if box is not None else BoundingBox(*config.box),
    )
