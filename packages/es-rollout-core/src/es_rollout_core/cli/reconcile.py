"""Reconcile CLI command.

This module provides the CLI command that drives rollouts:
- reconcile: Run one pass (--once) or the reconcile daemon

Declared clusters come from a YAML file (--file) or from the cluster
resources of a namespace. Backend collaborators are created through the
backend factory, so kubernetes_asyncio is only imported when needed.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from es_rollout_core.cli.backend_factory import AVAILABLE_BACKENDS, create_backend
from es_rollout_core.cli.output import print_report, setup_logging
from es_rollout_core.config import RolloutSettings
from es_rollout_core.reconcile import FileClusterSource, ReconcileLoop


def reconcile_command(
    file: Path = typer.Option(
        None, "--file", "-f", help="YAML file with declared cluster resource(s)"
    ),
    namespace: str = typer.Option(
        None,
        "--namespace",
        "-n",
        envvar="ES_ROLLOUT_NAMESPACE",
        help="Namespace of the declared cluster resources",
    ),
    once: bool = typer.Option(False, "--once", help="Run a single pass and exit"),
    interval: float = typer.Option(
        None, "--interval", "-i", help="Seconds between passes (daemon mode)"
    ),
    backend: str = typer.Option(
        "kube", "--backend", "-b", help=f"Backend ({', '.join(AVAILABLE_BACKENDS)})"
    ),
    kubeconfig: str = typer.Option(
        None, "--kubeconfig", envvar="KUBECONFIG", help="Path to kubeconfig file"
    ),
    in_cluster: bool = typer.Option(
        False, "--in-cluster", help="Use the pod service account"
    ),
    es_url: str = typer.Option(
        "https://{name}.{namespace}.svc:9200",
        "--es-url",
        envvar="ES_ROLLOUT_ES_URL",
        help="Elasticsearch URL template ({name}, {namespace} placeholders)",
    ),
    es_token: str = typer.Option(
        None, "--es-token", envvar="ES_ROLLOUT_ES_TOKEN", help="Bearer token for Elasticsearch"
    ),
    insecure: bool = typer.Option(
        False, "--insecure", help="Skip TLS verification for Elasticsearch"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    Reconcile declared clusters.

    Without --once, runs until interrupted with Ctrl+C; an interrupt abandons
    in-flight waits and leaves every node group as last written.

    Environment variables:
        ES_ROLLOUT_NAMESPACE: Namespace of the declared cluster resources
        ES_ROLLOUT_ES_URL: Elasticsearch URL template
        ES_ROLLOUT_*: Rollout timing settings (see RolloutSettings)
    """
    setup_logging(verbose)
    console = Console()

    if file is None and namespace is None:
        console.print("[red]Error: pass --file or --namespace[/red]")
        raise typer.Exit(1)

    settings = RolloutSettings()
    if interval is not None:
        settings.reconcile_interval_seconds = interval

    async def _run() -> int:
        try:
            rollout = await create_backend(
                backend,
                kubeconfig=kubeconfig,
                in_cluster=in_cluster,
                settings=settings,
                es_url=es_url,
                verify=not insecure,
                token=es_token,
            )
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

        try:
            source = (
                FileClusterSource(file, namespace)
                if file is not None
                else rollout.cluster_source(namespace)
            )
            loop = ReconcileLoop(
                source=source,
                make_orchestrator=rollout.make_orchestrator,
                interval_seconds=settings.reconcile_interval_seconds,
            )
            if not once:
                await loop.run()
                return 0

            reports = await loop.run_once()
            for report in reports:
                print_report(console, report)
            return 0 if reports and all(r.ok for r in reports) else 1
        finally:
            await rollout.aclose()

    exit_code = asyncio.run(_run())
    if exit_code:
        raise typer.Exit(exit_code)
