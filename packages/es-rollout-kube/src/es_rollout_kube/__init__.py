"""
Kubernetes bindings for the search-cluster rollout operator.

This package provides the concrete collaborators the rollout core consumes:

- KubeWorkloadBackend: Deployments, stateful sets and pods via kubernetes_asyncio
- ConfigMapStore / SecretStore: Configuration and credential bundles
- ElasticsearchMembershipClient: Cluster membership via the cat nodes API (httpx)
- ElasticsearchPodTemplateBuilder: Minimal elasticsearch pod template
- CustomResourceStatusWriter / CustomResourceClusterSource: The declared resource
- create_kube_rollout: Factory wiring them together
"""

from es_rollout_kube.backend import KubeWorkloadBackend
from es_rollout_kube.bundles import ConfigMapStore, SecretStore
from es_rollout_kube.factory import KubeRollout, create_kube_rollout
from es_rollout_kube.membership import ElasticsearchMembershipClient
from es_rollout_kube.status import CustomResourceClusterSource, CustomResourceStatusWriter
from es_rollout_kube.templates import ElasticsearchPodTemplateBuilder

__all__ = [
    "KubeWorkloadBackend",
    "ConfigMapStore",
    "SecretStore",
    "ElasticsearchMembershipClient",
    "ElasticsearchPodTemplateBuilder",
    "CustomResourceStatusWriter",
    "CustomResourceClusterSource",
    "KubeRollout",
    "create_kube_rollout",
]
