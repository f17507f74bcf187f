"""
Protocols for the thin collaborators around the rollout core.

Manifest construction and status write-back are mechanical concerns owned by
other components. The core only needs:
- PodTemplateBuilderProtocol: render the desired pod template for a group
- StatusWriterProtocol: persist per-group upgrade conditions
- ClusterSourceProtocol: list the declared clusters to reconcile

Cluster and group arguments are typed as Any here to keep this package free
of dependencies on the core's declared-topology models.
"""

from typing import Any, Protocol, runtime_checkable

from es_rollout_protocols.types import PodSpec


@runtime_checkable
class PodTemplateBuilderProtocol(Protocol):
    """Builds the desired pod template for one node group."""

    def build(self, cluster: Any, group: Any) -> PodSpec:
        """
        Render the desired pod template.

        Args:
            cluster: The declared cluster resource.
            group: The node group derived from the topology.

        Returns:
            PodSpec the group's workload should run.
        """
        ...


@runtime_checkable
class StatusWriterProtocol(Protocol):
    """Writes aggregated node statuses back to the declared resource."""

    async def write(self, cluster: Any, statuses: list[Any]) -> None:
        """
        Persist node statuses on the declared resource's status block.

        Args:
            cluster: The declared cluster resource.
            statuses: One status entry per node group.
        """
        ...


@runtime_checkable
class ClusterSourceProtocol(Protocol):
    """Supplies the declared clusters the reconcile loop should drive."""

    async def list_clusters(self) -> list[Any]:
        """
        Return every declared cluster resource to reconcile.

        Returns:
            Declared cluster resources, in any order.
        """
        ...
