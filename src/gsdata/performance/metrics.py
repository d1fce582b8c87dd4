"""In-process counters and timings for a single run."""

import statistics
import threading
import time
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..utils.logging import get_logger


@dataclass
class PerformanceStats:
    """Performance statistics for a metric."""

    count: int
    min_value: float
    max_value: float
    mean: float
    median: float
    total: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "count": self.count,
            "min": self.min_value,
            "max": self.max_value,
            "mean": self.mean,
            "median": self.median,
            "total": self.total
        }


class MetricsCollector:
    """Collects counters and value series."""

    def __init__(self, max_points_per_metric: int = 10000):
        """Initialize metrics collector.

        Args:
            max_points_per_metric: Maximum points to keep per metric
        """
        self.max_points_per_metric = max_points_per_metric
        self.logger = get_logger(self.__class__.__name__)

        self._values: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_points_per_metric))
        self._counters: Dict[str, int] = defaultdict(int)

        # Cipher and credential refresh run in worker threads
        self._lock = threading.RLock()

    def record_value(self, metric_name: str, value: Union[float, int], tags: Optional[Dict[str, str]] = None):
        """Record a value metric. Tags are accepted for call-site symmetry and not stored."""
        with self._lock:
            self._values[metric_name].append(float(value))

    def increment_counter(self, counter_name: str, value: int = 1):
        """Increment a counter metric."""
        with self._lock:
            self._counters[counter_name] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters.get(counter_name, 0)

    @asynccontextmanager
    async def time_operation(self, metric_name: str, tags: Optional[Dict[str, str]] = None):
        """Context manager for timing operations."""
        start_time = time.time()
        try:
            yield
        finally:
            self.record_value(metric_name, time.time() - start_time, tags)

    def get_stats(self, metric_name: str) -> Optional[PerformanceStats]:
        """Get statistics for a metric, or None if nothing was recorded."""
        with self._lock:
            values = list(self._values.get(metric_name, ()))

        if not values:
            return None

        return PerformanceStats(
            count=len(values),
            min_value=min(values),
            max_value=max(values),
            mean=statistics.mean(values),
            median=statistics.median(values),
            total=sum(values)
        )

    def get_all_metrics(self) -> Dict[str, Any]:
        """Get all counters and value statistics."""
        with self._lock:
            names = list(self._values)
            counters = dict(self._counters)

        values = {}
        for name in names:
            stats = self.get_stats(name)
            if stats:
                values[name] = stats.to_dict()

        return {"counters": counters, "values": values}

    def reset(self):
        """Drop all recorded data."""
        with self._lock:
            self._values.clear()
            self._counters.clear()


# Global instance
_global_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _global_metrics_collector

    if _global_metrics_collector is None:
        _global_metrics_collector = MetricsCollector()

    return _global_metrics_collector
