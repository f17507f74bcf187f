"""Shared rich rendering and logging setup for the CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from es_rollout_core.orchestrator import GroupAction, RolloutReport
from es_rollout_core.topology import ClusterTopology

_ACTION_STYLES = {
    GroupAction.CREATED: "green",
    GroupAction.ROLLED_OUT: "cyan",
    GroupAction.SCALED: "blue",
    GroupAction.UNCHANGED: "dim",
    GroupAction.REMOVED: "magenta",
    GroupAction.BLOCKED: "yellow",
    GroupAction.FAILED: "red",
}


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich; --verbose selects DEBUG."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )
    # Client libraries are noisy at DEBUG
    for name in ("httpx", "httpcore", "kubernetes_asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def topology_table(topology: ClusterTopology) -> Table:
    table = Table(
        title=(
            f"{topology.namespace}/{topology.cluster_name}: "
            f"{topology.master_count} masters (quorum {topology.quorum}), "
            f"{topology.data_count} data, shards {topology.primary_shards}p/"
            f"{topology.replica_shards}r"
        )
    )
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Group")
    table.add_column("Kind")
    table.add_column("Replicas", justify="right")
    table.add_column("Roles")
    table.add_column("Master", justify="center")

    for index, group in enumerate(topology.groups, start=1):
        table.add_row(
            str(index),
            group.name,
            group.kind.value,
            str(group.replicas),
            ",".join(sorted(r.value for r in group.roles)),
            "[green]yes[/green]" if group.is_master_eligible else "",
        )
    return table


def print_report(console: Console, report: RolloutReport) -> None:
    if report.skipped:
        console.print(
            f"[yellow]{report.namespace}/{report.cluster_name} is unmanaged, skipped[/yellow]"
        )
        return

    statuses = {s.name: s for s in report.statuses}
    table = Table(title=f"Rollout of {report.namespace}/{report.cluster_name}")
    table.add_column("Group")
    table.add_column("Action")
    table.add_column("Phase")
    table.add_column("Upgrade", justify="center")
    table.add_column("Cert redeploy", justify="center")
    table.add_column("Error")

    for outcome in report.outcomes:
        status = statuses.get(outcome.name)
        style = _ACTION_STYLES[outcome.action]
        table.add_row(
            outcome.name,
            f"[{style}]{outcome.action.value}[/{style}]",
            outcome.phase.value,
            "yes" if status and status.scheduled_for_upgrade else "",
            "yes" if status and status.scheduled_for_cert_redeploy else "",
            str(outcome.error) if outcome.error else "",
        )
    console.print(table)
