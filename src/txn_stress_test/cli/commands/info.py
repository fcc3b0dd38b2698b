"""System information commands."""

import typer
import platform
import sys
import psutil
from typing import Optional
import redis

from ...db import BackendRegistry
from ...workload import WorkloadRegistry

app = typer.Typer()


@app.command()
def system():
    """Display system information."""
    typer.echo("System Information:")
    typer.echo("=" * 50)

    typer.echo(f"Python Version: {sys.version}")
    typer.echo(f"Python Executable: {sys.executable}")

    typer.echo(f"Platform: {platform.platform()}")
    typer.echo(f"Architecture: {platform.architecture()[0]}")
    typer.echo(f"Machine: {platform.machine()}")

    typer.echo(f"CPU Count: {psutil.cpu_count(logical=True)} (logical), {psutil.cpu_count(logical=False)} (physical)")
    cpu_freq = psutil.cpu_freq()
    if cpu_freq:
        typer.echo(f"CPU Frequency: {cpu_freq.current:.2f} MHz (max: {cpu_freq.max:.2f} MHz)")

    memory = psutil.virtual_memory()
    typer.echo(f"Total Memory: {memory.total / (1024**3):.2f} GB")
    typer.echo(f"Available Memory: {memory.available / (1024**3):.2f} GB")
    typer.echo(f"Memory Usage: {memory.percent}%")

    typer.echo("\nKey Package Versions:")
    import importlib.metadata
    for pkg in ['redis', 'numpy', 'psutil', 'typer', 'pyyaml', 'prometheus-client', 'rich']:
        try:
            typer.echo(f"  {pkg}: {importlib.metadata.version(pkg)}")
        except importlib.metadata.PackageNotFoundError:
            typer.echo(f"  {pkg}: Not installed")


def _get_redis_info(host: str, port: int, password: Optional[str] = None):
    """Get Redis info synchronously."""
    try:
        client = redis.Redis(
            host=host,
            port=port,
            password=password,
            socket_connect_timeout=5.0,
            socket_timeout=5.0,
            decode_responses=True
        )
        client.ping()
        info = client.info()
        client.close()
        return info

    except redis.RedisError as e:
        return {"error": str(e)}


@app.command("redis")
def redis_info(
    host: str = typer.Option("localhost", "--host", "-h", help="Redis host"),
    port: int = typer.Option(6379, "--port", "-p", help="Redis port"),
    password: Optional[str] = typer.Option(None, "--password", "-a", help="Redis password"),
):
    """Display Redis/Valkey server information."""
    typer.echo(f"Redis/Valkey Server Information ({host}:{port})")
    typer.echo("=" * 50)

    info = _get_redis_info(host, port, password)
    if "error" in info:
        typer.echo(f"❌ Connection failed: {info['error']}", err=True)
        raise typer.Exit(1)

    sections = {
        "Server": ["redis_version", "valkey_version", "redis_mode", "os", "arch_bits", "process_id"],
        "Memory": ["used_memory_human", "used_memory_peak_human", "maxmemory_policy"],
        "Stats": ["total_connections_received", "total_commands_processed", "keyspace_hits",
                  "keyspace_misses", "evicted_keys"],
        "Replication": ["role", "connected_slaves"],
        "CPU": ["used_cpu_sys", "used_cpu_user"],
    }

    for section_name, keys in sections.items():
        typer.echo(f"\n{section_name}:")
        for key in keys:
            if key in info:
                typer.echo(f"  {key}: {info[key]}")

    typer.echo("\nKeyspace:")
    databases = [key for key in info.keys() if key.startswith("db")]
    if databases:
        for db in databases:
            typer.echo(f"  {db}: {info[db]}")
    else:
        typer.echo("  Empty")


@app.command()
def workloads():
    """List available workloads."""
    workload_info = WorkloadRegistry.get_workload_info()

    if not workload_info:
        typer.echo("No workloads registered")
        return

    typer.echo("Available Workloads:")
    typer.echo("=" * 50)

    for info in workload_info:
        typer.echo(f"Name: {info['name']}")
        typer.echo(f"  Class: {info['class']}")
        typer.echo(f"  Module: {info['module']}")
        typer.echo(f"  Description: {info['description']}")
        typer.echo()

    typer.echo(f"Total: {len(workload_info)} workloads available")


@app.command()
def backends():
    """List available storage backends."""
    backend_info = BackendRegistry.get_backend_info()

    if not backend_info:
        typer.echo("No backends registered")
        return

    typer.echo("Available Backends:")
    typer.echo("=" * 50)

    for info in backend_info:
        typer.echo(f"Name: {info['name']}")
        typer.echo(f"  Class: {info['class']}")
        typer.echo(f"  Description: {info['description']}")
        typer.echo()

    typer.echo(f"Total: {len(backend_info)} backends available")
