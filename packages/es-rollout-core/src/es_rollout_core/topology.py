"""
Topology calculator.

Pure functions deriving quorum, shard counts, node group layout and role
classification from the declared cluster resource. No I/O, no side effects;
the topology is recomputed from the resource on every reconcile pass.

Group layout:
- a node spec holding the data role expands into one deployment-backed group
  per node (replicas=1 each), because data nodes carry unique shard copies
  and are restarted one at a time
- any other node spec becomes a single stateful-backed group with
  replicas=nodeCount

Groups are ordered by role priority so that dedicated masters are visited
before mixed masters, then data-only and client-only groups.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from es_rollout_protocols import WorkloadKind

from es_rollout_core.errors import TopologyError
from es_rollout_core.types import (
    ElasticsearchCluster,
    NodeRole,
    NodeSpec,
    RedundancyPolicy,
)

MAX_PRIMARY_SHARDS = 5

CLUSTER_NAME_LABEL = "cluster-name"
NODE_NAME_LABEL = "node-name"
COMPONENT_LABEL = "component"
ROLE_LABELS = {
    NodeRole.CLIENT: "es-node-client",
    NodeRole.DATA: "es-node-data",
    NodeRole.MASTER: "es-node-master",
}

# Role priority tiers, lowest visited first
PRIORITY_DEDICATED_MASTER = 0
PRIORITY_MIXED_MASTER = 1
PRIORITY_DATA = 2
PRIORITY_CLIENT = 3


def quorum(master_count: int) -> int:
    """Minimum number of master-eligible nodes for a healthy cluster."""
    return master_count // 2 + 1


def _count_role(cluster: ElasticsearchCluster, role: NodeRole) -> int:
    return sum(n.node_count for n in cluster.spec.nodes if role in n.roles)


def master_count(cluster: ElasticsearchCluster) -> int:
    return _count_role(cluster, NodeRole.MASTER)


def data_count(cluster: ElasticsearchCluster) -> int:
    return _count_role(cluster, NodeRole.DATA)


def primary_shard_count(cluster: ElasticsearchCluster) -> int:
    """Primary shards per index: one per data node, capped at five."""
    return min(data_count(cluster), MAX_PRIMARY_SHARDS)


def replica_shard_count(cluster: ElasticsearchCluster) -> int:
    """
    Replica shards per primary, from the redundancy policy.

    FullRedundancy replicates to every other data node, MultipleRedundancy
    to half of them, SingleRedundancy keeps one copy and ZeroRedundancy none.
    Without a policy a single data node gets no replica, otherwise one.
    """
    data = data_count(cluster)
    policy = cluster.spec.redundancy_policy

    if policy == RedundancyPolicy.FULL:
        return max(data - 1, 0)
    if policy == RedundancyPolicy.MULTIPLE:
        return max((data - 1) // 2, 0)
    if policy == RedundancyPolicy.SINGLE:
        return 1
    if policy == RedundancyPolicy.ZERO:
        return 0
    return 0 if data <= 1 else 1


def is_master_eligible(roles: Iterable[NodeRole]) -> bool:
    return NodeRole.MASTER in set(roles)


def role_abbreviation(roles: Iterable[NodeRole]) -> str:
    """Abbreviate a role set as a subsequence of "cdm" (e.g. {data, master} -> "dm")."""
    held = set(roles)
    return "".join(
        role.value[0]
        for role in (NodeRole.CLIENT, NodeRole.DATA, NodeRole.MASTER)
        if role in held
    )


def role_priority(roles: Iterable[NodeRole]) -> int:
    held = set(roles)
    if NodeRole.MASTER in held:
        if NodeRole.DATA in held:
            return PRIORITY_MIXED_MASTER
        return PRIORITY_DEDICATED_MASTER
    if NodeRole.DATA in held:
        return PRIORITY_DATA
    return PRIORITY_CLIENT


def labels_for(cluster_name: str, group_name: str, roles: Iterable[NodeRole]) -> dict[str, str]:
    """Labels placed on a group's workload and pods."""
    held = set(roles)
    labels = {
        COMPONENT_LABEL: "elasticsearch",
        CLUSTER_NAME_LABEL: cluster_name,
        NODE_NAME_LABEL: group_name,
    }
    for role, label in ROLE_LABELS.items():
        labels[label] = "true" if role in held else "false"
    return labels


def roles_from_labels(labels: dict[str, str]) -> frozenset[NodeRole]:
    """Recover the role set of a workload from its labels."""
    return frozenset(
        role for role, label in ROLE_LABELS.items() if labels.get(label) == "true"
    )


def pod_selector(cluster_name: str, group_name: str) -> dict[str, str]:
    return {CLUSTER_NAME_LABEL: cluster_name, NODE_NAME_LABEL: group_name}


def cluster_selector(cluster_name: str) -> dict[str, str]:
    return {CLUSTER_NAME_LABEL: cluster_name}


@dataclass
class GroupSpec:
    """
    Desired layout of one node group.

    Attributes:
        name: Group (and workload) name.
        cluster_name: Owning cluster.
        namespace: Namespace of the cluster.
        kind: Backing workload variant, chosen once at topology-build time.
        replicas: Desired replica count.
        roles: Roles every node of the group holds.
        node: The declared node spec the group was expanded from.
    """

    name: str
    cluster_name: str
    namespace: str
    kind: WorkloadKind
    replicas: int
    roles: frozenset[NodeRole]
    node: NodeSpec

    @property
    def is_master_eligible(self) -> bool:
        return is_master_eligible(self.roles)

    @property
    def priority(self) -> int:
        return role_priority(self.roles)

    @property
    def labels(self) -> dict[str, str]:
        return labels_for(self.cluster_name, self.name, self.roles)

    @property
    def selector(self) -> dict[str, str]:
        return pod_selector(self.cluster_name, self.name)


@dataclass
class ClusterTopology:
    """
    Ordered node groups plus global parameters of one cluster.

    Derived, never persisted.
    """

    cluster_name: str
    namespace: str
    master_count: int
    data_count: int
    quorum: int
    primary_shards: int
    replica_shards: int
    groups: list[GroupSpec] = field(default_factory=list)

    @property
    def group_names(self) -> list[str]:
        return [g.name for g in self.groups]

    def master_groups(self) -> list[GroupSpec]:
        return [g for g in self.groups if g.is_master_eligible]

    def get(self, name: str) -> GroupSpec | None:
        return next((g for g in self.groups if g.name == name), None)


def _expand_node(
    cluster: ElasticsearchCluster, node: NodeSpec, base: str
) -> list[GroupSpec]:
    roles = frozenset(node.roles)
    if NodeRole.DATA in roles:
        return [
            GroupSpec(
                name=f"{base}-{index}",
                cluster_name=cluster.name,
                namespace=cluster.namespace,
                kind=WorkloadKind.DEPLOYMENT,
                replicas=1,
                roles=roles,
                node=node,
            )
            for index in range(1, node.node_count + 1)
        ]
    if node.node_count == 0:
        return []
    return [
        GroupSpec(
            name=base,
            cluster_name=cluster.name,
            namespace=cluster.namespace,
            kind=WorkloadKind.STATEFUL_SET,
            replicas=node.node_count,
            roles=roles,
            node=node,
        )
    ]


def build_topology(cluster: ElasticsearchCluster) -> ClusterTopology:
    """
    Derive the ordered topology of a declared cluster.

    Raises:
        TopologyError: If a node spec has no roles, or no master is declared.
    """
    masters = master_count(cluster)
    if masters < 1:
        raise TopologyError(
            f"Cluster {cluster.namespace}/{cluster.name} declares no master nodes"
        )

    groups: list[GroupSpec] = []
    seen: dict[str, int] = {}
    for node in cluster.spec.nodes:
        if not node.roles:
            raise TopologyError(
                f"Cluster {cluster.namespace}/{cluster.name} has a node spec without roles"
            )
        abbreviation = role_abbreviation(node.roles)
        if node.gen_uuid:
            base = f"{cluster.name}-{abbreviation}-{node.gen_uuid}"
        else:
            seen[abbreviation] = seen.get(abbreviation, 0) + 1
            suffix = "" if seen[abbreviation] == 1 else str(seen[abbreviation])
            base = f"{cluster.name}-{abbreviation}{suffix}"
        groups.extend(_expand_node(cluster, node, base))

    # sorted() is stable: declaration order is kept within a tier
    groups = sorted(groups, key=lambda g: g.priority)

    return ClusterTopology(
        cluster_name=cluster.name,
        namespace=cluster.namespace,
        master_count=masters,
        data_count=data_count(cluster),
        quorum=quorum(masters),
        primary_shards=primary_shard_count(cluster),
        replica_shards=replica_shard_count(cluster),
        groups=groups,
    )
