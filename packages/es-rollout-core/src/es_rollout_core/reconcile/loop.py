"""
ReconcileLoop daemon for continuous cluster rollouts.

This module implements the reconcile loop daemon that:
- Runs continuously at a configurable interval
- Lists declared clusters from a ClusterSourceProtocol
- Runs one rollout pass per cluster, clusters concurrently
- Logs a summary line per pass
- Handles graceful shutdown on SIGINT/SIGTERM

Shutdown:
- Uses asyncio.Event for shutdown coordination
- The same event is handed to every orchestrator, so in-flight waits are
  abandoned as soon as a signal arrives; groups are left as last written
- Uses wait_for with timeout for interruptible sleep between passes
"""

import asyncio
import functools
import logging
import signal
from collections.abc import Callable
from datetime import datetime

from es_rollout_protocols import BackendError, ClusterSourceProtocol

from es_rollout_core.errors import TopologyError, WaitCancelledError
from es_rollout_core.orchestrator import ClusterRolloutOrchestrator, RolloutReport
from es_rollout_core.types import ElasticsearchCluster

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[ElasticsearchCluster, asyncio.Event], ClusterRolloutOrchestrator]


class ReconcileLoop:
    """
    Long-running daemon that keeps every declared cluster rolled out.

    Each pass lists the declared clusters and runs one orchestrator pass per
    cluster. A cluster's pass completes before the next pass over the same
    cluster starts; distinct clusters proceed independently.

    Example:
        loop = ReconcileLoop(
            source=FileClusterSource(Path("cluster.yaml")),
            make_orchestrator=lambda cluster, stop: ClusterRolloutOrchestrator(
                cluster, backend, fingerprinter, membership, builder, stop=stop
            ),
            interval_seconds=30.0,
        )
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        source: ClusterSourceProtocol,
        make_orchestrator: OrchestratorFactory,
        interval_seconds: float = 30.0,
    ) -> None:
        """
        Initialize reconcile loop.

        Args:
            source: Supplies the declared clusters on every pass
            make_orchestrator: Builds an orchestrator for (cluster, stop event)
            interval_seconds: Seconds between passes (default 30)
        """
        self.source = source
        self.make_orchestrator = make_orchestrator
        self.interval = interval_seconds
        self._shutdown = asyncio.Event()

        # Stats for the pass summary
        self._pass_count = 0
        self._last_pass: datetime | None = None

    @property
    def shutdown_event(self) -> asyncio.Event:
        return self._shutdown

    def stop(self) -> None:
        """Request shutdown; in-flight waits are abandoned."""
        self._shutdown.set()

    async def run(self) -> None:
        """
        Run reconcile passes until a shutdown signal.

        Registers SIGINT and SIGTERM handlers for graceful shutdown.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                sig,
                functools.partial(self._handle_signal, sig),
            )

        logger.info(f"Reconcile loop starting (interval: {self.interval}s)")

        while not self._shutdown.is_set():
            await self.run_once()

            try:
                await asyncio.wait_for(
                    self._shutdown.wait(),
                    timeout=self.interval,
                )
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop

        logger.info("Reconcile loop stopped")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info(f"Received {sig.name}, shutting down...")
        self._shutdown.set()

    async def run_once(self) -> list[RolloutReport]:
        """
        Run one pass over every declared cluster.

        Returns:
            Reports of the clusters whose pass completed. Clusters whose pass
            failed outright or was cancelled are logged and left out.
        """
        self._last_pass = datetime.now()
        self._pass_count += 1

        try:
            clusters = await self.source.list_clusters()
        except (BackendError, OSError, ValueError) as e:
            logger.error(f"Could not list declared clusters: {e}")
            return []

        results = await asyncio.gather(
            *(self._reconcile_cluster(c) for c in clusters)
        )
        reports = [r for r in results if r is not None]
        self._log_summary(reports, len(clusters))
        return reports

    async def _reconcile_cluster(self, cluster: ElasticsearchCluster) -> RolloutReport | None:
        orchestrator = self.make_orchestrator(cluster, self._shutdown)
        try:
            return await orchestrator.reconcile()
        except WaitCancelledError as e:
            logger.warning(f"Pass over cluster {cluster.namespace}/{cluster.name} cancelled: {e}")
        except TopologyError as e:
            logger.error(f"Cluster {cluster.namespace}/{cluster.name} has an invalid topology: {e}")
        except BackendError as e:
            logger.error(f"Pass over cluster {cluster.namespace}/{cluster.name} failed: {e}")
        return None

    def _log_summary(self, reports: list[RolloutReport], cluster_count: int) -> None:
        failing = [r for r in reports if not r.ok]
        status = "all settled" if not failing and len(reports) == cluster_count else (
            f"{len(failing) + cluster_count - len(reports)} cluster(s) need attention"
        )
        logger.info(f"Pass {self._pass_count} complete: {cluster_count} cluster(s), {status}")
