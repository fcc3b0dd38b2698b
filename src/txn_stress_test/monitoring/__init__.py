"""Measurement export components."""

from .exporter import CSVExporter, PrometheusExporter

__all__ = [
    "CSVExporter",
    "PrometheusExporter",
]
