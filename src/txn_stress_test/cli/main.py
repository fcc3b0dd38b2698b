"""
Transactional Workload Stress Testing CLI

Main entry point for the tst command-line tool.
"""

import typer
import logging
import sys

from . import commands

app = typer.Typer(
    name="tst",
    help="Transactional Key-Value Workload Stress Testing Tool",
    add_completion=False,
)

app.add_typer(commands.run.app, name="run", help="Run load or transaction phases")
app.add_typer(commands.validate.app, name="validate", help="Validate configurations")
app.add_typer(commands.info.app, name="info", help="Display system information")


def _configure_logging(verbose: bool, quiet: bool) -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    # Reduce noise from third-party libraries
    if not verbose:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('redis').setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output"),
):
    """Transactional Key-Value Workload Stress Testing Tool."""
    if verbose and quiet:
        typer.echo("Error: Cannot use both --verbose and --quiet", err=True)
        raise typer.Exit(1)

    _configure_logging(verbose, quiet)


def _get_version() -> str:
    """Get package version."""
    import importlib.metadata
    try:
        return importlib.metadata.version("txn-stress-test")
    except importlib.metadata.PackageNotFoundError:
        from .. import __version__
        return __version__


@app.command()
def version():
    """Display version information."""
    import importlib.metadata

    typer.echo(f"txn-stress-test version {_get_version()}")
    typer.echo(f"Python {sys.version}")

    typer.echo("\nKey dependencies:")
    for dep in ['redis', 'numpy', 'typer', 'pyyaml']:
        try:
            typer.echo(f"  {dep}: {importlib.metadata.version(dep)}")
        except importlib.metadata.PackageNotFoundError:
            typer.echo(f"  {dep}: Not found")


if __name__ == "__main__":
    app()
