# src/txn_stress_test/core/metrics.py
"""Latency measurement collection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any
import logging
import threading
import time

import numpy as np

from .errors import Status

logger = logging.getLogger(__name__)


class MeasurementSink(ABC):
    """Receives one latency sample per completed logical operation."""

    @abstractmethod
    def measure(self, operation: str, latency_us: int) -> None:
        """
        Record an elapsed time.

        Args:
            operation: Operation label, e.g. "READ" or "SINGLETON"
            latency_us: Elapsed wall-clock time in microseconds
        """
        pass

    def report_status(self, operation: str, status: Status) -> None:
        """Record the outcome of an operation (optional for sinks)."""
        pass


def elapsed_us(start_ns: int) -> int:
    """Microseconds elapsed since a ``time.perf_counter_ns()`` reading."""
    return max(0, (time.perf_counter_ns() - start_ns) // 1000)


@dataclass
class OperationMetrics:
    """Metrics for a specific operation label."""
    operation: str
    latencies_us: List[int] = field(default_factory=list)
    status_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    start_time: float = field(default_factory=time.time)

    @property
    def count(self) -> int:
        return len(self.latencies_us)

    @property
    def error_count(self) -> int:
        return sum(n for name, n in self.status_counts.items() if name != Status.OK.name)

    def add_latency(self, latency_us: int) -> None:
        """Add a latency sample."""
        self.latencies_us.append(latency_us)

    def add_status(self, status: Status) -> None:
        self.status_counts[status.name] += 1

    def get_throughput(self) -> float:
        """Calculate operations per second."""
        elapsed = time.time() - self.start_time
        if elapsed > 0:
            return self.count / elapsed
        return 0.0

    def get_percentiles(self) -> Tuple[float, float, float]:
        """Calculate p50, p95, p99 in microseconds."""
        if not self.latencies_us:
            return 0.0, 0.0, 0.0

        samples = np.asarray(self.latencies_us, dtype=np.int64)
        p50, p95, p99 = np.percentile(samples, [50, 95, 99])
        return float(p50), float(p95), float(p99)

    def to_summary(self) -> Dict[str, Any]:
        """Summary statistics for reporting."""
        p50, p95, p99 = self.get_percentiles()
        if self.latencies_us:
            samples = np.asarray(self.latencies_us, dtype=np.int64)
            mean_us, min_us, max_us = float(np.mean(samples)), int(np.min(samples)), int(np.max(samples))
        else:
            mean_us, min_us, max_us = 0.0, 0, 0

        return {
            "operation": self.operation,
            "count": self.count,
            "mean_us": mean_us,
            "min_us": min_us,
            "max_us": max_us,
            "p50_us": p50,
            "p95_us": p95,
            "p99_us": p99,
            "errors": self.error_count,
            "status": dict(self.status_counts),
        }


class Measurements(MeasurementSink):
    """Thread-safe sink aggregating samples per operation label."""

    def __init__(self):
        """Initialize an empty sink."""
        self._lock = threading.Lock()
        self.operation_metrics: Dict[str, OperationMetrics] = {}

    def _metrics_for(self, operation: str) -> OperationMetrics:
        metrics = self.operation_metrics.get(operation)
        if metrics is None:
            metrics = OperationMetrics(operation=operation)
            self.operation_metrics[operation] = metrics
        return metrics

    def measure(self, operation: str, latency_us: int) -> None:
        with self._lock:
            self._metrics_for(operation).add_latency(max(0, int(latency_us)))

    def report_status(self, operation: str, status: Status) -> None:
        with self._lock:
            self._metrics_for(operation).add_status(status)

    def get_operation_metrics(self, operation: str) -> Optional[OperationMetrics]:
        """Get metrics for a specific operation."""
        return self.operation_metrics.get(operation)

    def operations(self) -> List[str]:
        """Labels seen so far, sorted."""
        with self._lock:
            return sorted(self.operation_metrics)

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """Per-label summary statistics."""
        with self._lock:
            return {name: metrics.to_summary() for name, metrics in sorted(self.operation_metrics.items())}

    def reset(self) -> None:
        """Drop all samples."""
        with self._lock:
            self.operation_metrics.clear()
        logger.debug("Measurements reset")
