"""
Declared cluster sources.

FileClusterSource reads cluster resources from a YAML file (one or more
documents), re-reading it on every pass so edits are picked up by a running
daemon.
"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from es_rollout_core.types import ElasticsearchCluster

logger = logging.getLogger(__name__)


def load_clusters(path: Path, namespace: str | None = None) -> list[ElasticsearchCluster]:
    """
    Parse every cluster document in a YAML file.

    Args:
        path: YAML file holding one or more cluster documents
        namespace: Namespace applied to documents that set none

    Returns:
        Parsed clusters, in document order. Empty documents are skipped.

    Raises:
        ValueError: If the file is not valid YAML or a document is not a
            valid cluster resource.
    """
    with path.open() as f:
        try:
            documents = [d for d in yaml.safe_load_all(f) if d]
        except yaml.YAMLError as e:
            raise ValueError(f"{path} is not valid YAML: {e}") from e

    clusters = []
    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            raise ValueError(f"{path}: document {index} is not a mapping")
        if namespace and not document.get("metadata", {}).get("namespace"):
            document.setdefault("metadata", {})["namespace"] = namespace
        try:
            clusters.append(ElasticsearchCluster.model_validate(document))
        except ValidationError as e:
            raise ValueError(f"{path}: document {index} is not a valid cluster: {e}") from e
    return clusters


class FileClusterSource:
    """ClusterSourceProtocol implementation backed by a YAML file."""

    def __init__(self, path: Path, namespace: str | None = None) -> None:
        self.path = path
        self.namespace = namespace

    async def list_clusters(self) -> list[ElasticsearchCluster]:
        clusters = load_clusters(self.path, self.namespace)
        logger.debug(f"Loaded {len(clusters)} cluster(s) from {self.path}")
        return clusters
