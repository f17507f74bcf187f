"""
Kubernetes workload backend.

Implements WorkloadBackendProtocol on top of kubernetes_asyncio's AppsV1Api
(deployments and stateful sets) and CoreV1Api (pods). API failures are
translated into the backend error taxonomy:

- 404 -> NotFoundError
- 409 on create -> AlreadyExistsError
- 409 on replace -> ConflictError (stale resourceVersion)
- anything else -> BackendError
"""

from __future__ import annotations

import logging
from typing import Any

from kubernetes_asyncio.client import AppsV1Api, CoreV1Api
from kubernetes_asyncio.client.exceptions import ApiException

from es_rollout_protocols import (
    AlreadyExistsError,
    BackendError,
    ConflictError,
    NotFoundError,
    ObjectKey,
    Pod,
    Workload,
    WorkloadKind,
)

from es_rollout_kube.convert import (
    deployment_to_workload,
    pod_to_model,
    stateful_set_to_workload,
    workload_to_deployment,
    workload_to_stateful_set,
)

logger = logging.getLogger(__name__)

# AppsV1Api method name suffix per workload kind
_API_SUFFIX = {
    WorkloadKind.DEPLOYMENT: "deployment",
    WorkloadKind.STATEFUL_SET: "stateful_set",
}


def label_selector(selector: dict[str, str]) -> str:
    """Render a match-all selector as a Kubernetes label selector string."""
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))


def translate_api_error(
    e: ApiException, kind: str, name: str, namespace: str, operation: str
) -> BackendError:
    """Map an ApiException onto the backend error taxonomy."""
    if e.status == 404:
        return NotFoundError(kind, name, namespace)
    if e.status == 409 and operation == "create":
        return AlreadyExistsError(kind, name, namespace)
    if e.status == 409:
        return ConflictError(kind, name, namespace, detail=e.reason or "")
    return BackendError(
        f"{operation} {kind} {namespace}/{name} failed: {e.status} {e.reason}",
        kind=kind,
        name=name,
        namespace=namespace,
    )


class KubeWorkloadBackend:
    """
    WorkloadBackendProtocol implementation for a Kubernetes cluster.

    Example:
        async with ApiClient() as api:
            backend = KubeWorkloadBackend(apps=AppsV1Api(api), core=CoreV1Api(api))
            workload = await backend.get(
                WorkloadKind.DEPLOYMENT, ObjectKey("elasticsearch-cdm-1", "logging")
            )
    """

    def __init__(self, apps: AppsV1Api, core: CoreV1Api) -> None:
        self.apps = apps
        self.core = core

    def _serialize(self, obj: Any) -> Any:
        return self.apps.api_client.sanitize_for_serialization(obj)

    def _call(self, verb: str, kind: WorkloadKind):
        return getattr(self.apps, f"{verb}_namespaced_{_API_SUFFIX[kind]}")

    def _to_workload(self, kind: WorkloadKind, native: Any) -> Workload:
        if kind == WorkloadKind.DEPLOYMENT:
            return deployment_to_workload(native, self._serialize)
        return stateful_set_to_workload(native, self._serialize)

    def _to_native(self, workload: Workload) -> Any:
        if workload.kind == WorkloadKind.DEPLOYMENT:
            return workload_to_deployment(workload)
        return workload_to_stateful_set(workload)

    async def get(self, kind: WorkloadKind, key: ObjectKey) -> Workload:
        try:
            native = await self._call("read", kind)(key.name, key.namespace)
        except ApiException as e:
            raise translate_api_error(e, kind.value, key.name, key.namespace, "get") from e
        return self._to_workload(kind, native)

    async def create(self, workload: Workload) -> Workload:
        body = self._to_native(workload)
        body.metadata.resource_version = None
        try:
            native = await self._call("create", workload.kind)(workload.namespace, body)
        except ApiException as e:
            raise translate_api_error(
                e, workload.kind.value, workload.name, workload.namespace, "create"
            ) from e
        logger.debug(f"Created {workload.kind.value} {workload.key}")
        return self._to_workload(workload.kind, native)

    async def replace(self, workload: Workload) -> Workload:
        body = self._to_native(workload)
        try:
            native = await self._call("replace", workload.kind)(
                workload.name, workload.namespace, body
            )
        except ApiException as e:
            raise translate_api_error(
                e, workload.kind.value, workload.name, workload.namespace, "replace"
            ) from e
        return self._to_workload(workload.kind, native)

    async def delete(self, kind: WorkloadKind, key: ObjectKey) -> None:
        try:
            await self._call("delete", kind)(key.name, key.namespace)
        except ApiException as e:
            raise translate_api_error(e, kind.value, key.name, key.namespace, "delete") from e

    async def list(
        self, kind: WorkloadKind, namespace: str, selector: dict[str, str]
    ) -> list[Workload]:
        try:
            result = await self._call("list", kind)(
                namespace, label_selector=label_selector(selector)
            )
        except ApiException as e:
            raise translate_api_error(e, kind.value, "", namespace, "list") from e
        return [self._to_workload(kind, item) for item in result.items or []]

    async def list_pods(self, namespace: str, selector: dict[str, str]) -> list[Pod]:
        try:
            result = await self.core.list_namespaced_pod(
                namespace, label_selector=label_selector(selector)
            )
        except ApiException as e:
            raise translate_api_error(e, "Pod", "", namespace, "list") from e
        return [pod_to_model(item, self._serialize) for item in result.items or []]
