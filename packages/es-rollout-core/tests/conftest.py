"""
Shared in-memory collaborators for rollout core tests.

FakeBackend behaves like a small workload controller: unpaused workloads get
a revision token and their pods pick up the current template, paused ones
keep running whatever template they ran before. FakeMembership derives
cluster membership from the backend's live replicas.
"""

from __future__ import annotations

from copy import deepcopy

import pytest

from es_rollout_protocols import (
    AlreadyExistsError,
    BackendError,
    Bundle,
    BundleKind,
    ConflictError,
    Container,
    NotFoundError,
    ObjectKey,
    Pod,
    PodSpec,
    Workload,
    WorkloadKind,
)

from es_rollout_core.config import RolloutSettings
from es_rollout_core.fingerprint import ConfigFingerprinter
from es_rollout_core.topology import GroupSpec
from es_rollout_core.types import ElasticsearchCluster, NodeRole, NodeSpec

CLUSTER = "elasticsearch"
NAMESPACE = "logging"


class FakeBackend:
    """In-memory WorkloadBackendProtocol with controller-like behavior."""

    def __init__(self):
        self.workloads: dict[tuple[WorkloadKind, str, str], Workload] = {}
        self.running: dict[tuple[WorkloadKind, str, str], PodSpec] = {}
        self.revisions = 0
        self.versions = 0

        # Call accounting
        self.creates: list[str] = []
        self.replaces: list[str] = []
        self.deletes: list[str] = []
        self.history: list[Workload] = []

        # Fault injection
        self.conflicts = 0  # next N replaces raise ConflictError
        self.hold_rollout: set[str] = set()  # pods of these never update
        self.no_revision: set[str] = set()  # never observed by the controller
        self.fail_replace: set[str] = set()
        self.fail_list_pods = False

    def _key(self, kind: WorkloadKind, key: ObjectKey) -> tuple[WorkloadKind, str, str]:
        return (kind, key.namespace, key.name)

    def _controller(self, key, workload: Workload) -> None:
        if workload.name in self.no_revision:
            return
        if workload.is_paused and workload.kind == WorkloadKind.DEPLOYMENT:
            return
        previous = self.running.get(key)
        if not workload.revision or previous != workload.template:
            self.revisions += 1
            workload.revision = str(self.revisions)
        if previous is None:
            # Initial pods always start from the creation template
            self.running[key] = deepcopy(workload.template)
            return
        if workload.is_paused or workload.name in self.hold_rollout:
            return
        self.running[key] = deepcopy(workload.template)

    def _store(self, key, workload: Workload) -> Workload:
        self.versions += 1
        stored = deepcopy(workload)
        stored.resource_version = str(self.versions)
        stored.status_replicas = stored.replicas
        stored.ready_replicas = stored.replicas
        self._controller(key, stored)
        self.workloads[key] = stored
        self.history.append(deepcopy(stored))
        return deepcopy(stored)

    def put(self, workload: Workload, running: PodSpec | None = None) -> Workload:
        """Seed a workload, optionally with pods running another template."""
        key = self._key(workload.kind, workload.key)
        stored = self._store(key, workload)
        if running is not None:
            self.running[key] = deepcopy(running)
        return stored

    def stored(self, kind: WorkloadKind, name: str) -> Workload:
        return self.workloads[(kind, NAMESPACE, name)]

    async def get(self, kind: WorkloadKind, key: ObjectKey) -> Workload:
        stored = self.workloads.get(self._key(kind, key))
        if stored is None:
            raise NotFoundError(kind.value, key.name, key.namespace)
        return deepcopy(stored)

    async def create(self, workload: Workload) -> Workload:
        key = self._key(workload.kind, workload.key)
        if key in self.workloads:
            raise AlreadyExistsError(workload.kind.value, workload.name, workload.namespace)
        self.creates.append(workload.name)
        return self._store(key, workload)

    async def replace(self, workload: Workload) -> Workload:
        key = self._key(workload.kind, workload.key)
        stored = self.workloads.get(key)
        if stored is None:
            raise NotFoundError(workload.kind.value, workload.name, workload.namespace)
        if workload.name in self.fail_replace:
            raise BackendError("injected failure", workload.kind.value, workload.name)
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConflictError(workload.kind.value, workload.name, workload.namespace)
        if workload.resource_version != stored.resource_version:
            raise ConflictError(workload.kind.value, workload.name, workload.namespace)
        self.replaces.append(workload.name)
        return self._store(key, workload)

    async def delete(self, kind: WorkloadKind, key: ObjectKey) -> None:
        k = self._key(kind, key)
        if k not in self.workloads:
            raise NotFoundError(kind.value, key.name, key.namespace)
        self.deletes.append(key.name)
        del self.workloads[k]
        self.running.pop(k, None)

    async def list(
        self, kind: WorkloadKind, namespace: str, selector: dict[str, str]
    ) -> list[Workload]:
        return [
            deepcopy(w)
            for (k, ns, _), w in self.workloads.items()
            if k == kind and ns == namespace
            and all(w.labels.get(a) == b for a, b in selector.items())
        ]

    async def list_pods(self, namespace: str, selector: dict[str, str]) -> list[Pod]:
        if self.fail_list_pods:
            raise BackendError("injected list failure", "Pod")
        pods = []
        for key, workload in self.workloads.items():
            if key[1] != namespace:
                continue
            if not all(workload.template.labels.get(a) == b for a, b in selector.items()):
                continue
            if not workload.is_paused and workload.name not in self.hold_rollout:
                # Controller catches up on unpaused workloads over time
                self.running[key] = deepcopy(workload.template)
            spec = self.running.get(key)
            if spec is None:
                continue
            for ordinal in range(workload.replicas):
                pods.append(
                    Pod(
                        name=f"{workload.name}-{ordinal}",
                        namespace=namespace,
                        spec=deepcopy(spec),
                        labels=dict(workload.template.labels),
                        ready=True,
                    )
                )
        return pods


class FakeMembership:
    """Cluster members are the live replicas of the backend's workloads."""

    def __init__(self, backend: FakeBackend):
        self.backend = backend
        self.absent: set[str] = set()  # never join
        self.lingering: set[str] = set()  # never leave
        self.queries: list[str] = []

    def _members(self) -> set[str]:
        members = set()
        for workload in self.backend.workloads.values():
            if workload.kind == WorkloadKind.DEPLOYMENT:
                if workload.replicas > 0:
                    members.add(workload.name)
            else:
                members.update(f"{workload.name}-{i}" for i in range(workload.replicas))
        return members

    async def is_node_in_cluster(self, node_name: str) -> bool:
        self.queries.append(node_name)
        if node_name in self.lingering:
            return True
        return node_name in self._members() and node_name not in self.absent


class FakeBundleStore:
    """BundleStoreProtocol over a dict of bundles."""

    def __init__(self, kind: BundleKind):
        self.kind = kind
        self.bundles: dict[ObjectKey, Bundle] = {}
        self.fail = False

    def set(self, data: dict, name: str = CLUSTER, namespace: str = NAMESPACE) -> None:
        self.bundles[ObjectKey(name, namespace)] = Bundle(name, namespace, self.kind, data)

    def remove(self, name: str = CLUSTER, namespace: str = NAMESPACE) -> None:
        self.bundles.pop(ObjectKey(name, namespace), None)

    async def get(self, key: ObjectKey) -> Bundle:
        if self.fail:
            raise BackendError("store unavailable", self.kind.value, key.name, key.namespace)
        bundle = self.bundles.get(key)
        if bundle is None:
            raise NotFoundError(self.kind.value, key.name, key.namespace)
        return deepcopy(bundle)


class SimpleTemplateBuilder:
    """PodTemplateBuilderProtocol rendering one container from the cluster image."""

    def build(self, cluster: ElasticsearchCluster, group: GroupSpec) -> PodSpec:
        return PodSpec(
            containers=[Container(name="elasticsearch", image=cluster.spec.image)],
            labels=group.labels,
        )


class TransitionRecorder:
    """Transition observer collecting (group, old, new) tuples."""

    def __init__(self):
        self.transitions = []

    def __call__(self, group, old, new):
        self.transitions.append((group, old, new))

    def phases(self, group: str) -> list:
        return [new for g, _, new in self.transitions if g == group]


@pytest.fixture
def settings():
    return RolloutSettings(
        poll_interval_seconds=0.001,
        rollout_timeout_seconds=0.05,
        membership_timeout_seconds=0.05,
        conflict_min_wait_seconds=0.0,
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def membership(backend):
    return FakeMembership(backend)


@pytest.fixture
def config_store():
    store = FakeBundleStore(BundleKind.CONFIG)
    store.set({"elasticsearch.yml": "cluster.name: elasticsearch", "index_settings": "shards: 1"})
    return store


@pytest.fixture
def secret_store():
    store = FakeBundleStore(BundleKind.CREDENTIAL)
    store.set({"admin-cert": b"cert-v1", "admin-key": b"key-v1"})
    return store


@pytest.fixture
def fingerprinter(config_store, secret_store):
    return ConfigFingerprinter(
        stores={BundleKind.CONFIG: config_store, BundleKind.CREDENTIAL: secret_store}
    )


@pytest.fixture
def builder():
    return SimpleTemplateBuilder()


@pytest.fixture
def recorder():
    return TransitionRecorder()


@pytest.fixture
def make_cluster():
    def _make(nodes: list[dict], image: str = "elasticsearch:6.8.1", **spec) -> ElasticsearchCluster:
        return ElasticsearchCluster.model_validate(
            {
                "metadata": {"name": CLUSTER, "namespace": NAMESPACE},
                "spec": {"nodes": nodes, "image": image, **spec},
            }
        )

    return _make


@pytest.fixture
def make_group_spec():
    def _make(
        name: str = "elasticsearch-cdm-1",
        kind: WorkloadKind = WorkloadKind.DEPLOYMENT,
        replicas: int = 1,
        roles=(NodeRole.CLIENT, NodeRole.DATA, NodeRole.MASTER),
    ) -> GroupSpec:
        return GroupSpec(
            name=name,
            cluster_name=CLUSTER,
            namespace=NAMESPACE,
            kind=kind,
            replicas=replicas,
            roles=frozenset(roles),
            node=NodeSpec(roles=list(roles), node_count=replicas),
        )

    return _make
