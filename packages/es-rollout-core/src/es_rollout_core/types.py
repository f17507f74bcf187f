"""
Declared cluster resource models.

This module provides Pydantic models for parsing the declared search-cluster
custom resource (as loaded from YAML or returned by the cluster API). These
are external data validation types; the derived topology and the workload
model are dataclasses.

Notes:
- The resource uses camelCase field names; models accept both the alias and
  the snake_case field name
- Unknown fields are ignored so that newer resource versions still parse
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeRole(str, Enum):
    """Roles a search-engine node can hold."""

    CLIENT = "client"
    DATA = "data"
    MASTER = "master"


class RedundancyPolicy(str, Enum):
    """How many replica shards each primary shard gets."""

    FULL = "FullRedundancy"
    MULTIPLE = "MultipleRedundancy"
    SINGLE = "SingleRedundancy"
    ZERO = "ZeroRedundancy"


class ManagementState(str, Enum):
    MANAGED = "Managed"
    UNMANAGED = "Unmanaged"


class _ResourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ResourceSpec(_ResourceModel):
    """Compute resource limits and requests as quantity strings."""

    limits: dict[str, str] = Field(default_factory=dict)
    requests: dict[str, str] = Field(default_factory=dict)


class TolerationSpec(_ResourceModel):
    key: str = ""
    operator: str = ""
    value: str = ""
    effect: str = ""
    toleration_seconds: int | None = Field(default=None, alias="tolerationSeconds")


class NodeSpec(_ResourceModel):
    """
    One declared set of identically configured nodes.

    Example:
        {"roles": ["client", "data", "master"], "nodeCount": 3,
         "resources": {"limits": {"memory": "4Gi"}}}
    """

    roles: list[NodeRole] = Field(default_factory=list)
    node_count: int = Field(default=0, alias="nodeCount", ge=0)
    resources: ResourceSpec | None = None
    node_selector: dict[str, str] | None = Field(default=None, alias="nodeSelector")
    tolerations: list[TolerationSpec] | None = None
    gen_uuid: str | None = Field(default=None, alias="genUUID")


class ClusterSpec(_ResourceModel):
    """
    The spec block of the declared cluster resource.

    Node-level resources, node selector and tolerations fall back to the
    cluster-level values when a node spec leaves them unset.
    """

    management_state: ManagementState = Field(
        default=ManagementState.MANAGED, alias="managementState"
    )
    redundancy_policy: RedundancyPolicy | None = Field(
        default=None, alias="redundancyPolicy"
    )
    nodes: list[NodeSpec] = Field(default_factory=list)
    image: str = "quay.io/openshift-logging/elasticsearch6:6.8.1"
    resources: ResourceSpec = Field(default_factory=ResourceSpec)
    node_selector: dict[str, str] = Field(default_factory=dict, alias="nodeSelector")
    tolerations: list[TolerationSpec] = Field(default_factory=list)


class ObjectMeta(_ResourceModel):
    name: str
    namespace: str = "default"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    uid: str = ""


class ElasticsearchCluster(_ResourceModel):
    """
    The declared cluster custom resource.

    Example document:
        apiVersion: logging.openshift.io/v1
        kind: Elasticsearch
        metadata: {name: elasticsearch, namespace: openshift-logging}
        spec:
          redundancyPolicy: SingleRedundancy
          nodes:
            - {roles: [client, data, master], nodeCount: 3}
    """

    api_version: str = Field(default="logging.openshift.io/v1", alias="apiVersion")
    kind: str = "Elasticsearch"
    metadata: ObjectMeta
    spec: ClusterSpec = Field(default_factory=ClusterSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace
