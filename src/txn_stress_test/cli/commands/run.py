"""Run commands for the load and transaction phases."""

import typer
from pathlib import Path
from typing import List, Optional
import logging

import rich.console

from ...core import Config, ConfigurationError, Measurements, KeySpace, UnreachableOperationError
from ...monitoring import CSVExporter, PrometheusExporter
from ...workload import LOAD_PHASE, RUN_PHASE, WorkloadResult, run_workload
from ..utils import parse_properties, result_table, save_results

app = typer.Typer()
console = rich.console.Console()
logger = logging.getLogger(__name__)


def build_config(config_path: Optional[Path],
                 properties: List[str],
                 backend: Optional[str],
                 workload: Optional[str],
                 threads: Optional[int]) -> Config:
    """Load the configuration file and apply command line overrides on top."""
    config = Config(config_path=config_path)

    overrides = parse_properties(properties)
    if backend:
        overrides["client.backend"] = backend
    if workload:
        overrides["client.workload"] = workload
    if threads is not None:
        overrides["client.threads"] = str(threads)

    if overrides:
        config.apply_properties(overrides)
    return config


def _export(config: Config,
            results: List[WorkloadResult],
            measurements: List[Measurements],
            output_dir: Optional[Path]) -> None:
    """Save each phase as YAML, then one CSV summary and Prometheus push covering all phases."""
    summary_path = config.output.summary_path
    if output_dir is not None:
        summary_path = output_dir / summary_path.name

    for result in results:
        results_file = save_results(
            {"result": result.to_dict(), "config": config.to_dict()},
            summary_path.parent / f"{result.phase}_results.yaml",
        )
        console.print(f"Detailed results saved to: {results_file}")

    CSVExporter(summary_path).export_summary(results)

    if config.monitoring.prometheus_pushgateway:
        exporter = PrometheusExporter(config.monitoring.prometheus_pushgateway, config.monitoring.job_name)
        for result in results:
            exporter.update_from_result(result)
        for phase_measurements in measurements:
            exporter.observe_measurements(phase_measurements)
        exporter.push_metrics()


def execute_phases(config: Config, phases: List[str], output_dir: Optional[Path]) -> List[WorkloadResult]:
    """Run phases in order against one key space and report all of them."""
    keyspace = KeySpace.from_config(config.workload)
    results = []
    phase_measurements = []

    for phase in phases:
        measurements = Measurements()
        console.print(f"[blue]Running {phase} phase: workload={config.client.workload}, "
                      f"backend={config.client.backend}, threads={config.client.threads}[/blue]")

        result = run_workload(config, phase, measurements=measurements, keyspace=keyspace)
        console.print(result_table(result))
        if result.errors:
            console.print(f"[yellow]{len(result.errors)} client thread errors, first: {result.errors[0]}[/yellow]")

        results.append(result)
        phase_measurements.append(measurements)

    _export(config, results, phase_measurements, output_dir)
    return results


def _run(phases: List[str],
         config_path: Optional[Path],
         properties: List[str],
         backend: Optional[str],
         workload: Optional[str],
         threads: Optional[int],
         output: Optional[Path]) -> None:
    try:
        config = build_config(config_path, properties, backend, workload, threads)
    except (ConfigurationError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    try:
        execute_phases(config, phases, output)
    except KeyError as e:
        console.print(f"[red]{e.args[0] if e.args else e}[/red]")
        raise typer.Exit(1)
    except ConfigurationError as e:
        console.print(f"[red]Workload configuration error: {e}[/red]")
        raise typer.Exit(1)
    except UnreachableOperationError as e:
        console.print(f"[red]Fatal workload error: {e}[/red]")
        raise typer.Exit(2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user[/yellow]")
        raise typer.Exit(130)


@app.command()
def load(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file"),
    prop: List[str] = typer.Option([], "--property", "-p", help="Property override, name=value"),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Storage backend"),
    workload: Optional[str] = typer.Option(None, "--workload", "-w", help="Workload name"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Client threads"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
):
    """Load the initial records."""
    _run([LOAD_PHASE], config, prop, backend, workload, threads, output)


@app.command()
def transactions(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file"),
    prop: List[str] = typer.Option([], "--property", "-p", help="Property override, name=value"),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Storage backend"),
    workload: Optional[str] = typer.Option(None, "--workload", "-w", help="Workload name"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Client threads"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    with_load: bool = typer.Option(False, "--load", help="Run the load phase first in this process"),
):
    """Run the measured transaction phase."""
    phases = [LOAD_PHASE, RUN_PHASE] if with_load else [RUN_PHASE]
    _run(phases, config, prop, backend, workload, threads, output)
