"""Run metrics package."""

from .metrics import (
    MetricsCollector,
    PerformanceStats,
    get_metrics_collector,
)

__all__ = [
    "MetricsCollector",
    "PerformanceStats",
    "get_metrics_collector",
]
