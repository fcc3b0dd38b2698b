"""Configuration validation commands."""

import typer
import yaml
from pathlib import Path
from typing import List

from ...core import ConfigurationError
from ...core.config import Config, ConfigValidator
from ...workload import WorkloadRegistry
from ...db import BackendRegistry
from ..utils import parse_properties

app = typer.Typer()


@app.command()
def config(
    config_file: Path = typer.Argument(..., help="Path to configuration file"),
    prop: List[str] = typer.Option([], "--property", "-p", help="Property override, name=value"),
):
    """Validate a configuration file."""
    typer.echo(f"Validating config: {config_file}")

    if not config_file.exists():
        typer.echo(f"❌ Configuration file not found: {config_file}", err=True)
        raise typer.Exit(1)

    try:
        with open(config_file, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict) or not ConfigValidator.validate(config_data):
            typer.echo("❌ Configuration validation failed", err=True)
            raise typer.Exit(1)

        config = Config(config_path=config_file)
        if prop:
            config.apply_properties(parse_properties(prop))

        # Unknown names would only surface once a run starts
        BackendRegistry.get(config.client.backend)
        WorkloadRegistry.get(config.client.workload)

        typer.echo("✅ Configuration validation successful!")

        for section in Config.SECTIONS:
            if section in config_data:
                typer.echo(f"  {section.title()} Config: ✅")
                for key, value in config_data[section].items():
                    typer.echo(f"    {key}: {value}")
            else:
                typer.echo(f"  {section.title()} Config: Using defaults")

        typer.echo("\nEffective Configuration:")
        for section_name, section_data in config.to_dict().items():
            typer.echo(f"  {section_name}:")
            for key, value in section_data.items():
                typer.echo(f"    {key}: {value}")

    except yaml.YAMLError as e:
        typer.echo(f"❌ YAML parsing error: {e}", err=True)
        raise typer.Exit(1)
    except KeyError as e:
        typer.echo(f"❌ {e.args[0] if e.args else e}", err=True)
        raise typer.Exit(1)
    except (ConfigurationError, ValueError) as e:
        typer.echo(f"❌ Configuration validation failed: {e}", err=True)
        raise typer.Exit(1)
