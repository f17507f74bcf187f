"""Offline inspection CLI commands.

This module provides commands that need no cluster access:
- topology: Show quorum, shard counts and ordered node groups
- fingerprint: Compute the fingerprint of a bundle on disk
"""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from es_rollout_core.cli.output import topology_table
from es_rollout_core.errors import TopologyError
from es_rollout_core.fingerprint import DEFAULT_VOLATILE_KEYS, fingerprint_data
from es_rollout_core.reconcile.source import load_clusters
from es_rollout_core.topology import build_topology


def topology_command(
    file: Path = typer.Argument(..., help="YAML file with declared cluster resource(s)"),
    namespace: str = typer.Option(None, "--namespace", "-n", help="Default namespace"),
) -> None:
    """Show the derived topology of declared clusters."""
    console = Console()
    try:
        clusters = load_clusters(file, namespace)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    failed = False
    for cluster in clusters:
        try:
            console.print(topology_table(build_topology(cluster)))
        except TopologyError as e:
            console.print(f"[red]{cluster.namespace}/{cluster.name}: {e}[/red]")
            failed = True
    if failed:
        raise typer.Exit(1)


def _read_bundle(path: Path) -> dict[str, str | bytes]:
    """A directory holds one key per file; a file holds a YAML mapping."""
    if path.is_dir():
        return {p.name: p.read_bytes() for p in sorted(path.iterdir()) if p.is_file()}
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not hold a key/value mapping")
    return {str(k): v if isinstance(v, (str, bytes)) else str(v) for k, v in data.items()}


def fingerprint_command(
    path: Path = typer.Argument(..., help="Bundle directory or YAML key/value file"),
    volatile: list[str] = typer.Option(
        sorted(DEFAULT_VOLATILE_KEYS),
        "--volatile",
        help="Keys excluded from the fingerprint (repeatable)",
    ),
    credential: bool = typer.Option(
        False, "--credential", help="Treat as a credential bundle (no volatile keys)"
    ),
) -> None:
    """Print the fingerprint of a configuration or credential bundle."""
    try:
        data = _read_bundle(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}")
        raise typer.Exit(1)

    print(fingerprint_data(data, () if credential else volatile))
