from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from fishnet.monitoring.metrics import InferenceMetrics


@dataclass
class RuntimeIdentity:
    detector_backend: str
    classifier_backend: str
    classifier_mode: str


class PeriodicStatsLogger:
    def __init__(
        self,
        metrics: InferenceMetrics,
        identity: RuntimeIdentity,
        interval_seconds: float = 5.0,
    ) -> None:
        self._metrics = metrics
        self._identity = identity
        self._interval_seconds = max(0.5, interval_seconds)
        self._next_emit = time.monotonic() + self._interval_seconds
        self._logger = logging.getLogger("fishnet.stats")

    def maybe_emit(self, force: bool = False) -> None:
        now = time.monotonic()
        if now < self._next_emit and not force:
            return

        snapshot = self._metrics.snapshot()
        fallbacks = ",".join(f"{k}:{v}" for k, v in sorted(snapshot.fallbacks.items())) or "none"
        self._logger.info(
            "stats analyses=%d rate=%.2f/s mean_latency_ms=%.1f last_latency_ms=%.1f last_detection_count=%d fallbacks=%s not_ready=%d detector=%s classifier=%s mode=%s",
            snapshot.analyses,
            snapshot.analyses_per_second,
            snapshot.mean_latency_ms,
            snapshot.last_latency_ms,
            snapshot.last_detection_count,
            fallbacks,
            snapshot.rejected_not_ready,
            self._identity.detector_backend,
            self._identity.classifier_backend,
            self._identity.classifier_mode,
        )

        self._next_emit = now + self._interval_seconds
