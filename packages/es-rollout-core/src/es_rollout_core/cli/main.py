"""es-rollout CLI - staged rollouts for search-engine clusters."""

import typer

from es_rollout_core.cli.offline import fingerprint_command, topology_command
from es_rollout_core.cli.reconcile import reconcile_command

app = typer.Typer(
    name="es-rollout",
    help="Staged, quorum-safe rollouts for search-engine clusters",
    no_args_is_help=True,
)

app.command("reconcile")(reconcile_command)
app.command("topology")(topology_command)
app.command("fingerprint")(fingerprint_command)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
