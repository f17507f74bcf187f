"""
Search-cluster rollout core.

Drives staged, quorum-safe rollouts of a search-engine cluster's node groups
through any WorkloadBackendProtocol implementation. This package provides:

- ConfigFingerprinter: Drift detection for configuration/credential bundles
- NodeGroup: Per-group rollout state machine (deployment and stateful variants)
- ClusterRolloutOrchestrator: Master-safe sequencing across all groups
- build_topology: Quorum, shard counts and ordered groups from the declared resource
- ReconcileLoop: Daemon re-running passes at a fixed interval
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

from es_rollout_core.config import RolloutSettings
from es_rollout_core.errors import (
    ConflictRetriesExhaustedError,
    NodeGroupError,
    RolloutError,
    RolloutTimeoutError,
    TopologyError,
    WaitCancelledError,
)
from es_rollout_core.fingerprint import ConfigFingerprinter, fingerprint_data
from es_rollout_core.nodegroup import (
    DeploymentNodeGroup,
    NodeGroup,
    NodeGroupPhase,
    NodeGroupStatus,
    StatefulSetNodeGroup,
    new_node_group,
)
from es_rollout_core.orchestrator import (
    ClusterRolloutOrchestrator,
    GroupAction,
    GroupOutcome,
    RolloutReport,
)
from es_rollout_core.retry import RetryConfig, update_with_retry
from es_rollout_core.topology import ClusterTopology, GroupSpec, build_topology, quorum
from es_rollout_core.types import ElasticsearchCluster, NodeRole, NodeSpec

__all__ = [
    "__version__",
    # Settings
    "RolloutSettings",
    "RetryConfig",
    # Errors
    "RolloutError",
    "RolloutTimeoutError",
    "WaitCancelledError",
    "ConflictRetriesExhaustedError",
    "NodeGroupError",
    "TopologyError",
    # Fingerprints
    "ConfigFingerprinter",
    "fingerprint_data",
    # Node groups
    "NodeGroup",
    "DeploymentNodeGroup",
    "StatefulSetNodeGroup",
    "NodeGroupPhase",
    "NodeGroupStatus",
    "new_node_group",
    "update_with_retry",
    # Orchestration
    "ClusterRolloutOrchestrator",
    "GroupAction",
    "GroupOutcome",
    "RolloutReport",
    # Topology
    "ClusterTopology",
    "GroupSpec",
    "build_topology",
    "quorum",
    # Declared resource
    "ElasticsearchCluster",
    "NodeRole",
    "NodeSpec",
]
