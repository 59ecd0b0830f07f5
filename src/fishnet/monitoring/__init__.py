from fishnet.monitoring.logging import configure_logging
from fishnet.monitoring.metrics import InferenceMetrics
from fishnet.monitoring.stats import PeriodicStatsLogger, RuntimeIdentity

__all__ = [
    "configure_logging",
    "InferenceMetrics",
    "PeriodicStatsLogger",
    "RuntimeIdentity",
]
