"""
Cluster membership protocol definition.

The rollout core never talks to the search engine directly beyond asking
whether a named node is currently part of the live cluster. That question is
answered by a ClusterMembershipProtocol implementation.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ClusterMembershipProtocol(Protocol):
    """
    Answers "is node N currently a member of the live cluster?".

    Implementations should raise BackendError when the cluster cannot be
    queried; a reachable cluster that does not list the node returns False.
    """

    async def is_node_in_cluster(self, node_name: str) -> bool:
        """
        Check whether the named node is a member of the live cluster.

        Args:
            node_name: Search-engine node name (as configured on the node).

        Returns:
            True if the node currently appears in the cluster's node list.
        """
        ...
