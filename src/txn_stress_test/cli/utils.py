"""CLI utility functions."""

from pathlib import Path
from typing import Any, Dict, List
import logging

import rich.table
import yaml

from ..workload.base import WorkloadResult

logger = logging.getLogger(__name__)


def parse_properties(items: List[str]) -> Dict[str, str]:
    """
    Parse ``name=value`` property overrides.

    Raises:
        ValueError: If an item has no ``=`` or an empty name
    """
    properties = {}
    for item in items:
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Property must look like name=value: {item!r}")
        properties[name] = value.strip()
    return properties


def format_duration(seconds: float) -> str:
    """Format duration as human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {seconds:.0f}s"
    hours, minutes = divmod(minutes, 60)
    return f"{int(hours)}h {int(minutes)}m"


def result_table(result: WorkloadResult) -> rich.table.Table:
    """Per-operation latency table of a finished phase."""
    table = rich.table.Table(
        title=f"{result.phase} phase: {result.operations_per_second:,.1f} ops/sec "
              f"in {format_duration(result.total_time_seconds)}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Operation", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Mean (us)", justify="right")
    table.add_column("p50 (us)", justify="right")
    table.add_column("p95 (us)", justify="right")
    table.add_column("p99 (us)", justify="right")
    table.add_column("Max (us)", justify="right")

    for operation, stats in result.operations.items():
        errors = stats.get("errors", 0)
        table.add_row(
            operation,
            f"{stats.get('count', 0):,}",
            f"[red]{errors:,}[/red]" if errors else "0",
            f"{stats.get('mean_us', 0.0):,.1f}",
            f"{stats.get('p50_us', 0.0):,.0f}",
            f"{stats.get('p95_us', 0.0):,.0f}",
            f"{stats.get('p99_us', 0.0):,.0f}",
            f"{stats.get('max_us', 0):,}",
        )

    table.add_row(
        "[bold]TOTAL[/bold]",
        f"{result.success_count + result.failure_count:,}",
        f"[red]{result.failure_count:,}[/red]" if result.failure_count else "0",
        "", "", "", "", "",
    )
    return table


def save_results(results: Dict[str, Any], output_path: Path) -> Path:
    """Write results as YAML, creating the parent directory."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        yaml.safe_dump(results, f, default_flow_style=False, sort_keys=False)
    logger.debug(f"Saved results to {output_path}")
    return output_path
