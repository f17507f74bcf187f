"""
Shared data model for the rollout protocol system.

This module defines the plain data structures exchanged between the rollout
core and its collaborators (workload backends, bundle stores, membership
clients). They intentionally model only the fields the core reasons about:
the pod template parts covered by the pod-spec difference rule, pause and
replica state, and the backend-assigned revision token.

All types use @dataclass. Concrete backends may stash their native object
in the ``raw`` field so that replacing a workload does not drop fields the
model does not carry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WorkloadKind(str, Enum):
    """Replica-managed workload variants a node group can be backed by."""

    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"


class BundleKind(str, Enum):
    """Kinds of named bundles whose content is fingerprinted."""

    CONFIG = "ConfigMap"
    CREDENTIAL = "Secret"


class OperationResult(str, Enum):
    """Outcome of a create or update operation against a backend."""

    NONE = "unchanged"
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class ObjectKey:
    """Name and namespace identifying one backend object."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class VolumeMount:
    name: str
    mount_path: str
    read_only: bool = False
    sub_path: str = ""


@dataclass
class EnvVar:
    """
    Container environment variable.

    Attributes:
        name: Variable name.
        value: Literal value (empty when value_from is used).
        value_from: Opaque source reference (field, config or secret key),
            compared structurally.
    """

    name: str
    value: str = ""
    value_from: dict[str, Any] | None = None


@dataclass
class ContainerPort:
    container_port: int
    name: str = ""
    protocol: str = "TCP"


@dataclass
class ResourceRequirements:
    """Compute resource limits and requests as quantity strings."""

    limits: dict[str, str] = field(default_factory=dict)
    requests: dict[str, str] = field(default_factory=dict)


@dataclass
class Toleration:
    key: str = ""
    operator: str = ""
    value: str = ""
    effect: str = ""
    toleration_seconds: int | None = None


@dataclass
class Container:
    name: str
    image: str
    args: list[str] = field(default_factory=list)
    env: list[EnvVar] = field(default_factory=list)
    ports: list[ContainerPort] = field(default_factory=list)
    volume_mounts: list[VolumeMount] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)


@dataclass
class PodSpec:
    """
    The portion of a pod template the rollout core compares.

    Attributes:
        containers: Containers in declaration order.
        node_selector: Node label constraints (None and {} are equivalent).
        tolerations: Taint tolerations, order-insensitive.
        labels: Pod template labels.
    """

    containers: list[Container] = field(default_factory=list)
    node_selector: dict[str, str] = field(default_factory=dict)
    tolerations: list[Toleration] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Workload:
    """
    A replica-managed workload backing one node group.

    Attributes:
        name: Workload name (equal to the node group name).
        namespace: Namespace of the workload.
        kind: Deployment-style or stateful-identity-style backend.
        replicas: Desired replica count in the workload spec.
        template: Pod template the workload stamps out.
        paused: Deployment pause flag. Ignored for stateful workloads.
        partition: Rolling-update partition of a stateful workload. Pods with
            an ordinal below the partition are not updated; a partition at or
            above the replica count holds back every pod.
        labels: Object labels, used for listing by cluster.
        annotations: Object annotations. Recorded fingerprints live here.
        revision: Backend-assigned template revision token, empty until the
            backend controller first observes the workload.
        ready_replicas: Ready replicas as reported by the backend.
        status_replicas: Live replicas as reported by the backend.
        resource_version: Optimistic-concurrency token.
        raw: Backend-native object, carried through replace calls.
    """

    name: str
    namespace: str
    kind: WorkloadKind
    replicas: int
    template: PodSpec = field(default_factory=PodSpec)
    paused: bool = False
    partition: int | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    revision: str = ""
    ready_replicas: int = 0
    status_replicas: int = 0
    resource_version: str = ""
    raw: Any = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)

    @property
    def is_paused(self) -> bool:
        """True when template changes are held back from running pods."""
        if self.kind == WorkloadKind.STATEFUL_SET:
            return self.partition is not None and self.partition >= self.replicas
        return self.paused


@dataclass
class Pod:
    name: str
    namespace: str
    spec: PodSpec
    labels: dict[str, str] = field(default_factory=dict)
    ready: bool = False


@dataclass
class Bundle:
    """
    A named configuration or credential bundle.

    Values are bytes for credential bundles and str for configuration
    bundles; fingerprinting treats both as raw content.
    """

    name: str
    namespace: str
    kind: BundleKind
    data: dict[str, str | bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class BundleRef:
    """Reference to a bundle: name, namespace and kind."""

    name: str
    namespace: str
    kind: BundleKind

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)
