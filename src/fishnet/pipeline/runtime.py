from __future__ import annotations

import logging
import random
import threading
import time

import numpy as np

from fishnet.config.models import RuntimeConfig
from fishnet.inference.errors import ClassificationFailure, DetectionFailure, NotReadyError
from fishnet.inference.labels import DISEASE_LABELS, SPECIES_LABELS, resolve_labels
from fishnet.inference.provider import ModelHandles, ModelProvider, ProviderStatus
from fishnet.monitoring.logging import log_context
from fishnet.monitoring.metrics import InferenceMetrics
from fishnet.pipeline.arbiter import DecisionArbiter, RandomSource
from fishnet.pipeline.assemble import (
    FULL_FALLBACK,
    PARTIAL_FALLBACK,
    assemble_result,
    fallback_result,
)
from fishnet.pipeline.classify import MULTIHEAD, ClassificationStage
from fishnet.pipeline.detector import DetectorStage
from fishnet.pipeline.region import RegionExtractor
from fishnet.pipeline.tensors import TensorArena
from fishnet.types import AnalysisResult, BoundingBox, Frame


class _Stages:
    def __init__(self, detector: DetectorStage, extractor: RegionExtractor, classifier: ClassificationStage) -> None:
        self.detector = detector
        self.extractor = extractor
        self.classifier = classifier


class FishAnalyzer:
    def __init__(
        self,
        provider: ModelProvider,
        config: RuntimeConfig,
        *,
        metrics: InferenceMetrics | None = None,
        rng: RandomSource | None = None,
        species_labels: tuple[str, ...] | None = None,
        disease_labels: tuple[str, ...] | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._metrics = metrics or InferenceMetrics()
        self._logger = logging.getLogger("fishnet.analyzer")

        specs = provider.specs
        species_role = "classifier" if config.classifier.mode == MULTIHEAD else "species"
        self._species_labels = species_labels or resolve_labels(specs.get(species_role), SPECIES_LABELS)
        self._disease_labels = disease_labels or resolve_labels(specs.get("disease"), DISEASE_LABELS)
        if config.fallback.species_name not in self._species_labels:
            raise ValueError(
                f"fallback species {config.fallback.species_name!r} is not in the species label set"
            )

        self._arbiter = DecisionArbiter(
            config.arbiter,
            config.classifier,
            species_labels=self._species_labels,
            disease_labels=self._disease_labels,
            rng=rng or random.Random(config.seed),
        )
        self._stages: _Stages | None = None
        self._stages_lock = threading.Lock()

    @property
    def status(self) -> ProviderStatus:
        return self._provider.status

    @property
    def metrics(self) -> InferenceMetrics:
        return self._metrics

    @property
    def species_labels(self) -> tuple[str, ...]:
        return self._species_labels

    @property
    def disease_labels(self) -> tuple[str, ...]:
        return self._disease_labels

    def _build_stages(self, handles: ModelHandles) -> _Stages:
        with self._stages_lock:
            if self._stages is not None:
                return self._stages
            models = self._config.models
            detector_entry = models.detector
            output_orders = {
                role: list(getattr(models, role).output_order)
                for role in ("classifier", "species", "disease")
            }
            self._stages = _Stages(
                detector=DetectorStage(
                    handles.detector,
                    self._config.detector,
                    input_size=detector_entry.input_size,
                    input_scale=detector_entry.input_scale,
                    output_order=detector_entry.output_order,
                ),
                extractor=RegionExtractor(self._config.classifier.crop_size),
                classifier=ClassificationStage(
                    handles,
                    mode=self._config.classifier.mode,
                    species_labels=self._species_labels,
                    disease_labels=self._disease_labels,
                    output_orders=output_orders,
                ),
            )
            return self._stages

    def analyze(self, frame: Frame | np.ndarray) -> AnalysisResult:
        """Run one frame through detect, crop, classify and arbitrate.

        Stage failures become fallback results. ``NotReadyError`` and
        ``LoadError`` propagate when models are not loaded.
        """
        try:
            handles = self._provider.handles()
        except NotReadyError:
            self._metrics.mark_not_ready()
            raise
        stages = self._build_stages(handles)

        started = time.perf_counter()
        box: BoundingBox | None = None
        source = getattr(frame, "source", "") or "<array>"
        try:
            with TensorArena("analysis") as arena:
                if not isinstance(frame, Frame):
                    frame = Frame(np.asarray(frame))
                detection = stages.detector.run(frame)
                box = detection.box
                self._metrics.set_detection_count(detection.detection_count)

                crop = stages.extractor.extract(frame, box, arena)
                outputs = stages.classifier.run(crop, arena)
                arbitration = self._arbiter.arbitrate(outputs)
            self._metrics.mark_rule_hits(list(arbitration.applied_rules))
            if arbitration.applied_rules:
                self._logger.debug(
                    "arbiter rules=%s ruleset=%s raw_score=%.3f",
                    ",".join(arbitration.applied_rules),
                    arbitration.ruleset_version,
                    arbitration.raw_species_score,
                )
            return assemble_result(arbitration, box)
        except (DetectionFailure, ClassificationFailure, ValueError) as exc:
            return self._fallback(box, exc, source)
        except Exception as exc:
            self._logger.exception("unexpected analysis failure source=%s", source)
            return self._fallback(box, exc, source)
        finally:
            self._metrics.mark_analysis((time.perf_counter() - started) * 1000.0)

    def _fallback(self, box: BoundingBox | None, exc: Exception, source: str) -> AnalysisResult:
        kind = FULL_FALLBACK if box is None else PARTIAL_FALLBACK
        self._metrics.mark_fallback(kind)
        self._logger.warning(
            "analysis fallback kind=%s source=%s error=%s: %s",
            kind,
            source,
            type(exc).__name__,
            exc,
            extra=log_context(fallback=kind, source=source),
        )
        return fallback_result(self._config.fallback, box)
