"""
Cluster resource status writer and source.

Both talk to the declared cluster custom resource through CustomObjectsApi:
- CustomResourceStatusWriter patches per-node upgrade conditions onto the
  resource's status subresource
- CustomResourceClusterSource lists the declared clusters of a namespace
"""

import logging
from typing import Any

from kubernetes_asyncio.client import CustomObjectsApi
from kubernetes_asyncio.client.exceptions import ApiException
from pydantic import ValidationError

from es_rollout_core.nodegroup import NodeGroupStatus
from es_rollout_core.types import ElasticsearchCluster

from es_rollout_kube.backend import translate_api_error

logger = logging.getLogger(__name__)

PLURAL_NAME = "elasticsearches"


def _group_version(api_version: str) -> tuple[str, str]:
    group, _, version = api_version.partition("/")
    return group, version


def status_body(statuses: list[NodeGroupStatus]) -> dict[str, Any]:
    """Render node statuses as the resource's status.nodes block."""
    nodes = []
    for status in statuses:
        nodes.append(
            {
                "deploymentName": status.name,
                "phase": status.phase.value,
                "upgradeStatus": {
                    "scheduledUpgrade": str(status.scheduled_for_upgrade).lower(),
                    "scheduledRedeploy": str(status.scheduled_for_cert_redeploy).lower(),
                },
                "conditions": [
                    {"type": name, "status": "True" if value else "False"}
                    for name, value in status.conditions().items()
                ],
            }
        )
    return {"status": {"nodes": nodes}}


class CustomResourceStatusWriter:
    """StatusWriterProtocol writing to the cluster resource's status subresource."""

    def __init__(self, custom: CustomObjectsApi) -> None:
        self.custom = custom

    async def write(self, cluster: ElasticsearchCluster, statuses: list[NodeGroupStatus]) -> None:
        group, version = _group_version(cluster.api_version)
        try:
            await self.custom.patch_namespaced_custom_object_status(
                group=group,
                version=version,
                namespace=cluster.namespace,
                plural=PLURAL_NAME,
                name=cluster.name,
                body=status_body(statuses),
            )
        except ApiException as e:
            raise translate_api_error(
                e, cluster.kind, cluster.name, cluster.namespace, "patch status"
            ) from e
        logger.debug(f"Wrote status of {len(statuses)} node(s) to {cluster.namespace}/{cluster.name}")


class CustomResourceClusterSource:
    """ClusterSourceProtocol listing declared cluster resources of one namespace."""

    def __init__(
        self,
        custom: CustomObjectsApi,
        namespace: str,
        api_version: str = "logging.openshift.io/v1",
    ) -> None:
        self.custom = custom
        self.namespace = namespace
        self.api_version = api_version

    async def list_clusters(self) -> list[ElasticsearchCluster]:
        group, version = _group_version(self.api_version)
        try:
            result = await self.custom.list_namespaced_custom_object(
                group=group,
                version=version,
                namespace=self.namespace,
                plural=PLURAL_NAME,
            )
        except ApiException as e:
            raise translate_api_error(e, "Elasticsearch", "", self.namespace, "list") from e

        clusters = []
        for item in result.get("items", []):
            try:
                clusters.append(ElasticsearchCluster.model_validate(item))
            except ValidationError as e:
                name = item.get("metadata", {}).get("name", "?")
                logger.warning(f"Skipping malformed cluster resource {self.namespace}/{name}: {e}")
        return clusters
