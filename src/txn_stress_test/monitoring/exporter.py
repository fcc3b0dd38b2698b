# src/txn_stress_test/monitoring/exporter.py
"""Measurement export to CSV and Prometheus."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Any, Optional, Sequence
import logging
import time

from prometheus_client import CollectorRegistry, Gauge, Counter, Histogram, push_to_gateway
from prometheus_client.exposition import basic_auth_handler

from ..core.metrics import Measurements
from ..workload.base import WorkloadResult

logger = logging.getLogger(__name__)


class CSVExporter:
    """Writes per-operation summaries of finished phases to CSV."""

    columns = [
        "timestamp",
        "phase",
        "operation",
        "count",
        "errors",
        "mean_us",
        "min_us",
        "max_us",
        "p50_us",
        "p95_us",
        "p99_us",
        "operations_per_second",
    ]

    def __init__(self, output_path: Path):
        """
        Initialize CSV exporter.

        Args:
            output_path: Path to output CSV file
        """
        self.output_path = Path(output_path)
        logger.debug(f"Initialized CSV exporter: {self.output_path}")

    def rows(self, result: WorkloadResult, timestamp: Optional[float] = None) -> List[Dict[str, Any]]:
        """One row per operation label plus a TOTAL row."""
        timestamp = timestamp if timestamp is not None else time.time()
        rows = []

        for operation, stats in result.operations.items():
            rows.append({
                "timestamp": timestamp,
                "phase": result.phase,
                **stats,
                "operation": operation,
            })

        rows.append({
            "timestamp": timestamp,
            "phase": result.phase,
            "operation": "TOTAL",
            "count": result.success_count + result.failure_count,
            "errors": result.failure_count,
            "operations_per_second": result.operations_per_second,
        })
        return rows

    def export_summary(self, results: Sequence[WorkloadResult]) -> None:
        """Write the summary of one or more phases, replacing the file."""
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            timestamp = time.time()

            with open(self.output_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=self.columns, extrasaction='ignore')
                writer.writeheader()
                for result in results:
                    writer.writerows(self.rows(result, timestamp))

            logger.info(f"Exported summary to: {self.output_path}")

        except OSError as e:
            logger.error(f"Failed to export summary: {e}")


class PrometheusExporter:
    """Exports measurements to a Prometheus pushgateway."""

    def __init__(self,
                 pushgateway_url: str,
                 job_name: str,
                 instance: Optional[str] = None,
                 username: Optional[str] = None,
                 password: Optional[str] = None):
        """
        Initialize Prometheus exporter.

        Args:
            pushgateway_url: URL of Prometheus pushgateway
            job_name: Job name for grouping metrics
            instance: Instance label
            username: Basic auth username
            password: Basic auth password
        """
        self.pushgateway_url = pushgateway_url
        self.job_name = job_name
        self.instance = instance or "txn_stress_test"

        self.auth_handler = None
        if username and password:
            def handler(url, method, timeout, headers, data):
                return basic_auth_handler(url, method, timeout, headers, data, username, password)
            self.auth_handler = handler

        self.registry = CollectorRegistry()
        self._define_metrics()

        logger.info(f"Initialized Prometheus exporter: {pushgateway_url}")

    def _define_metrics(self) -> None:
        """Define Prometheus metrics."""
        self.operations_total = Counter(
            'txn_operations_total',
            'Completed operations by outcome',
            ['phase', 'operation', 'status'],
            registry=self.registry
        )
        self.latency_percentile = Gauge(
            'txn_latency_us',
            'Operation latency percentile in microseconds',
            ['phase', 'operation', 'percentile'],
            registry=self.registry
        )
        self.throughput = Gauge(
            'txn_operations_per_second',
            'Throughput of the phase',
            ['phase'],
            registry=self.registry
        )
        self.operation_duration = Histogram(
            'txn_operation_duration_seconds',
            'Operation duration in seconds',
            ['operation'],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
            registry=self.registry
        )

    def record_operation(self, operation: str, duration_seconds: float) -> None:
        """Record one operation duration."""
        self.operation_duration.labels(operation=operation).observe(duration_seconds)

    def update_from_result(self, result: WorkloadResult) -> None:
        """Set counters and percentile gauges from a finished phase."""
        self.throughput.labels(phase=result.phase).set(result.operations_per_second)

        for operation, stats in result.operations.items():
            for status, count in stats.get("status", {}).items():
                self.operations_total.labels(phase=result.phase, operation=operation, status=status).inc(count)
            for percentile in ("p50", "p95", "p99"):
                self.latency_percentile.labels(
                    phase=result.phase, operation=operation, percentile=percentile
                ).set(stats.get(f"{percentile}_us", 0.0))

    def observe_measurements(self, measurements: Measurements) -> None:
        """Feed every collected latency sample into the duration histogram."""
        for operation in measurements.operations():
            metrics = measurements.get_operation_metrics(operation)
            if metrics is None:
                continue
            for latency_us in list(metrics.latencies_us):
                self.record_operation(operation, latency_us / 1_000_000)

    def push_metrics(self) -> None:
        """Push metrics to Prometheus pushgateway."""
        try:
            kwargs = {'handler': self.auth_handler} if self.auth_handler else {}
            push_to_gateway(
                self.pushgateway_url,
                job=self.job_name,
                registry=self.registry,
                grouping_key={'instance': self.instance},
                **kwargs
            )
            logger.debug("Pushed metrics to Prometheus pushgateway")

        except OSError as e:
            logger.error(f"Failed to push metrics to Prometheus: {e}")
