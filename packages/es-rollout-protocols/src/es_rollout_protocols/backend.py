"""
Workload backend and bundle store protocol definitions.

The WorkloadBackendProtocol is the only path through which the rollout core
reads or mutates persisted workload state. Implementations include the
Kubernetes binding in es-rollout-kube and in-memory fakes used by tests.

Signalling contract:
- get/delete raise NotFoundError when the object is absent
- create raises AlreadyExistsError when the object is present
- replace raises ConflictError when workload.resource_version is stale
- anything else is raised as BackendError
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from es_rollout_protocols.types import Bundle, ObjectKey, Pod, Workload, WorkloadKind


@runtime_checkable
class WorkloadBackendProtocol(Protocol):
    """
    Primitive operations on replica-managed workloads and their pods.

    Every method takes the workload kind explicitly so that one backend can
    serve both deployment-backed and stateful-backed node groups.
    """

    async def get(self, kind: WorkloadKind, key: ObjectKey) -> Workload:
        """
        Fetch the current persisted workload.

        Raises:
            NotFoundError: If no such workload exists.
        """
        ...

    async def create(self, workload: Workload) -> Workload:
        """
        Persist a new workload and return it as stored.

        Raises:
            AlreadyExistsError: If a workload with the same key exists.
        """
        ...

    async def replace(self, workload: Workload) -> Workload:
        """
        Conditionally overwrite a workload read earlier.

        The write only succeeds if workload.resource_version still matches
        the stored version.

        Raises:
            ConflictError: If the stored object changed since it was read.
            NotFoundError: If the workload was deleted meanwhile.
        """
        ...

    async def delete(self, kind: WorkloadKind, key: ObjectKey) -> None:
        """
        Delete a workload.

        Raises:
            NotFoundError: If no such workload exists.
        """
        ...

    async def list(
        self, kind: WorkloadKind, namespace: str, selector: dict[str, str]
    ) -> list[Workload]:
        """List workloads of one kind whose labels match every selector entry."""
        ...

    async def list_pods(self, namespace: str, selector: dict[str, str]) -> list[Pod]:
        """List pods whose labels match every selector entry."""
        ...


@runtime_checkable
class BundleStoreProtocol(Protocol):
    """
    Read access to named configuration or credential bundles.

    One store serves one bundle kind; the fingerprinter is handed a store
    per kind.
    """

    async def get(self, key: ObjectKey) -> Bundle:
        """
        Fetch a bundle by name and namespace.

        Raises:
            NotFoundError: If the bundle does not exist.
        """
        ...
