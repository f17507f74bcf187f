"""
Protocol definitions for the search-cluster rollout operator.

This package provides the Protocol definitions and shared data model that
the rollout core consumes. It has zero dependencies on other es-rollout-*
packages.

Key protocols:
- WorkloadBackendProtocol: Workload create/get/replace/delete/list primitives
- BundleStoreProtocol: Read access to configuration/credential bundles
- ClusterMembershipProtocol: Live cluster membership queries
- PodTemplateBuilderProtocol: Desired pod template rendering
- StatusWriterProtocol: Status write-back to the declared resource
- ClusterSourceProtocol: Declared clusters to reconcile

Key types:
- Workload, Pod, PodSpec, Container: Workload data model
- Bundle, BundleRef: Fingerprinted bundles
- ObjectKey: Name + namespace of a backend object
"""

from es_rollout_protocols.backend import BundleStoreProtocol, WorkloadBackendProtocol
from es_rollout_protocols.collaborators import (
    ClusterSourceProtocol,
    PodTemplateBuilderProtocol,
    StatusWriterProtocol,
)
from es_rollout_protocols.errors import (
    AlreadyExistsError,
    BackendError,
    ConflictError,
    NotFoundError,
)
from es_rollout_protocols.membership import ClusterMembershipProtocol
from es_rollout_protocols.types import (
    Bundle,
    BundleKind,
    BundleRef,
    Container,
    ContainerPort,
    EnvVar,
    ObjectKey,
    OperationResult,
    Pod,
    PodSpec,
    ResourceRequirements,
    Toleration,
    VolumeMount,
    Workload,
    WorkloadKind,
)

__all__ = [
    # Protocols
    "WorkloadBackendProtocol",
    "BundleStoreProtocol",
    "ClusterMembershipProtocol",
    "PodTemplateBuilderProtocol",
    "StatusWriterProtocol",
    "ClusterSourceProtocol",
    # Errors
    "BackendError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    # Data types
    "Bundle",
    "BundleKind",
    "BundleRef",
    "Container",
    "ContainerPort",
    "EnvVar",
    "ObjectKey",
    "OperationResult",
    "Pod",
    "PodSpec",
    "ResourceRequirements",
    "Toleration",
    "VolumeMount",
    "Workload",
    "WorkloadKind",
]
