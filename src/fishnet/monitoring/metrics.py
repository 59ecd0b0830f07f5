from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class MetricsSnapshot:
    analyses: int
    analyses_per_second: float
    fallbacks: dict[str, int]
    rejected_not_ready: int
    last_detection_count: int
    last_latency_ms: float
    mean_latency_ms: float
    arbiter_rule_hits: dict[str, int] = field(default_factory=dict)


class InferenceMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self._analyses = 0
        self._fallbacks: dict[str, int] = {}
        self._rule_hits: dict[str, int] = {}
        self._rejected_not_ready = 0
        self._last_detection_count = 0
        self._last_latency_ms = 0.0
        self._total_latency_ms = 0.0

        self._prometheus_started = False
        self._prometheus_counters = None

    def enable_prometheus(self, host: str, port: int) -> bool:
        try:
            from prometheus_client import Counter, Gauge, Histogram, start_http_server
        except ImportError:
            return False

        if self._prometheus_started:
            return True

        start_http_server(port, addr=host)
        self._prometheus_started = True
        self._prometheus_counters = {
            "analyses": Counter("fishnet_analyses_total", "Frames analyzed"),
            "fallbacks": Counter(
                "fishnet_fallbacks_total", "Fallback results returned", ["kind"]
            ),
            "not_ready": Counter(
                "fishnet_not_ready_total", "Calls rejected before models were ready"
            ),
            "rule_hits": Counter(
                "fishnet_arbiter_rule_hits_total", "Arbiter rule overrides", ["rule"]
            ),
            "detection_count": Gauge(
                "fishnet_last_detection_count", "Anchors above threshold in the last frame"
            ),
            "latency": Histogram("fishnet_analysis_seconds", "End-to-end analysis latency"),
        }
        return True

    def mark_analysis(self, latency_ms: float) -> None:
        with self._lock:
            self._analyses += 1
            self._last_latency_ms = max(0.0, float(latency_ms))
            self._total_latency_ms += self._last_latency_ms
            if self._prometheus_counters:
                self._prometheus_counters["analyses"].inc()
                self._prometheus_counters["latency"].observe(self._last_latency_ms / 1000.0)

    def mark_fallback(self, kind: str) -> None:
        with self._lock:
            self._fallbacks[kind] = self._fallbacks.get(kind, 0) + 1
            if self._prometheus_counters:
                self._prometheus_counters["fallbacks"].labels(kind=kind).inc()

    def mark_not_ready(self) -> None:
        with self._lock:
            self._rejected_not_ready += 1
            if self._prometheus_counters:
                self._prometheus_counters["not_ready"].inc()

    def mark_rule_hits(self, rules: list[str]) -> None:
        with self._lock:
            for rule in rules:
                self._rule_hits[rule] = self._rule_hits.get(rule, 0) + 1
                if self._prometheus_counters:
                    self._prometheus_counters["rule_hits"].labels(rule=rule).inc()

    def set_detection_count(self, count: int) -> None:
        with self._lock:
            self._last_detection_count = max(0, int(count))
            if self._prometheus_counters:
                self._prometheus_counters["detection_count"].set(self._last_detection_count)

    @property
    def last_detection_count(self) -> int:
        with self._lock:
            return self._last_detection_count

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            elapsed = max(1e-6, time.monotonic() - self._start)
            return MetricsSnapshot(
                analyses=self._analyses,
                analyses_per_second=self._analyses / elapsed,
                fallbacks=dict(self._fallbacks),
                rejected_not_ready=self._rejected_not_ready,
                last_detection_count=self._last_detection_count,
                last_latency_ms=self._last_latency_ms,
                mean_latency_ms=(self._total_latency_ms / self._analyses) if self._analyses else 0.0,
                arbiter_rule_hits=dict(self._rule_hits),
            )
