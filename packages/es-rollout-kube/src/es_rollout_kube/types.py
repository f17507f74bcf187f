"""
Elasticsearch-specific Pydantic response types.

This module provides Pydantic models for parsing responses from the
Elasticsearch cat API, used to answer membership queries. These are API
response types for external data validation; the rollout core only sees
booleans.

Notes:
- cat API columns are selected with ?h=..., so every field except the node
  name may be absent
- format=json returns a bare JSON array, parsed with a RootModel
"""

from pydantic import BaseModel, ConfigDict, Field, RootModel


class CatNode(BaseModel):
    """
    Single row of GET /_cat/nodes?format=json.

    Example row:
        {"name": "elasticsearch-cdm-1", "ip": "10.128.2.14",
         "node.role": "mdi", "master": "*"}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    ip: str = ""
    node_role: str = Field(default="", alias="node.role")
    master: str = ""  # "*" on the elected master


class CatNodesResponse(RootModel[list[CatNode]]):
    """Response from GET /_cat/nodes?format=json."""

    @property
    def names(self) -> set[str]:
        return {node.name for node in self.root}
