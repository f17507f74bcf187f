"""
Elasticsearch membership client.

Answers whether a named node is part of the live cluster by listing the
cluster's nodes through the cat API. The client receives an injected
httpx.AsyncClient with base_url set to the cluster's HTTP endpoint.
"""

import logging
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from es_rollout_protocols import BackendError

from es_rollout_kube.types import CatNodesResponse

logger = logging.getLogger(__name__)


@dataclass
class ElasticsearchMembershipClient:
    """
    ClusterMembershipProtocol implementation over the cat nodes API.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the cluster.

    Example:
        async with httpx.AsyncClient(base_url="https://elasticsearch:9200") as http:
            membership = ElasticsearchMembershipClient(http=http)
            if await membership.is_node_in_cluster("elasticsearch-cdm-1"):
                print("node is back")
    """

    http: httpx.AsyncClient

    async def node_names(self) -> set[str]:
        """
        List the names of all nodes currently in the cluster.

        Calls GET /_cat/nodes?h=name&format=json.

        Raises:
            BackendError: If the cluster is unreachable, answers with an
                error status, or returns a malformed body.
        """
        try:
            response = await self.http.get(
                "/_cat/nodes", params={"h": "name", "format": "json"}
            )
            response.raise_for_status()
            data = CatNodesResponse.model_validate(response.json())
        except httpx.HTTPError as e:
            raise BackendError(f"Could not list cluster nodes: {e}", kind="Node") from e
        except (ValidationError, ValueError) as e:
            raise BackendError(f"Malformed cat nodes response: {e}", kind="Node") from e
        return data.names

    async def is_node_in_cluster(self, node_name: str) -> bool:
        names = await self.node_names()
        logger.debug(f"Cluster members: {sorted(names)}; looking for {node_name}")
        return node_name in names
