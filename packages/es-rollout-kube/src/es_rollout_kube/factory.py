"""
Factory wiring the Kubernetes collaborators into rollout orchestrators.

This module provides the entry point the es-rollout CLI uses to obtain a
workload backend, bundle stores, status writer, cluster source and a
per-cluster membership client without importing kubernetes_asyncio itself.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import httpx
from kubernetes_asyncio import config
from kubernetes_asyncio.client import AppsV1Api, CoreV1Api, CustomObjectsApi
from kubernetes_asyncio.client.api_client import ApiClient

from es_rollout_protocols import BundleKind

from es_rollout_core.config import RolloutSettings
from es_rollout_core.fingerprint import ConfigFingerprinter
from es_rollout_core.orchestrator import ClusterRolloutOrchestrator
from es_rollout_core.types import ElasticsearchCluster

from es_rollout_kube.backend import KubeWorkloadBackend
from es_rollout_kube.bundles import ConfigMapStore, SecretStore
from es_rollout_kube.membership import ElasticsearchMembershipClient
from es_rollout_kube.status import CustomResourceClusterSource, CustomResourceStatusWriter
from es_rollout_kube.templates import ElasticsearchPodTemplateBuilder

logger = logging.getLogger(__name__)

DEFAULT_ES_URL = "https://{name}.{namespace}.svc:9200"


@dataclass
class KubeRollout:
    """
    Kubernetes-backed collaborators shared by every cluster orchestrator.

    Attributes:
        api: Shared kubernetes_asyncio ApiClient
        settings: Rollout timing and retry settings
        es_url: Elasticsearch URL template, formatted with the cluster's
            name and namespace
        verify: TLS verification for membership queries (bool or CA bundle path)
        token: Optional bearer token for membership queries

    Example:
        rollout = await create_kube_rollout(kubeconfig=None)
        try:
            source = rollout.cluster_source("openshift-logging")
            for cluster in await source.list_clusters():
                report = await rollout.make_orchestrator(cluster).reconcile()
        finally:
            await rollout.aclose()
    """

    api: ApiClient
    settings: RolloutSettings = field(default_factory=RolloutSettings)
    es_url: str = DEFAULT_ES_URL
    verify: bool | str = True
    token: str | None = None
    _http: dict[str, httpx.AsyncClient] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        core = CoreV1Api(self.api)
        custom = CustomObjectsApi(self.api)
        self.backend = KubeWorkloadBackend(apps=AppsV1Api(self.api), core=core)
        self.fingerprinter = ConfigFingerprinter(
            stores={
                BundleKind.CONFIG: ConfigMapStore(core),
                BundleKind.CREDENTIAL: SecretStore(core),
            },
            volatile_keys=frozenset(self.settings.volatile_config_keys),
        )
        self.template_builder = ElasticsearchPodTemplateBuilder()
        self.status_writer = CustomResourceStatusWriter(custom)
        self._custom = custom

    def cluster_source(self, namespace: str) -> CustomResourceClusterSource:
        return CustomResourceClusterSource(self._custom, namespace)

    def membership_for(self, cluster: ElasticsearchCluster) -> ElasticsearchMembershipClient:
        """Membership client for one cluster, created once and reused."""
        base_url = self.es_url.format(name=cluster.name, namespace=cluster.namespace)
        http = self._http.get(base_url)
        if http is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
            http = httpx.AsyncClient(
                base_url=base_url, timeout=10.0, verify=self.verify, headers=headers
            )
            self._http[base_url] = http
        return ElasticsearchMembershipClient(http=http)

    def make_orchestrator(
        self, cluster: ElasticsearchCluster, stop: asyncio.Event | None = None
    ) -> ClusterRolloutOrchestrator:
        return ClusterRolloutOrchestrator(
            cluster=cluster,
            backend=self.backend,
            fingerprinter=self.fingerprinter,
            membership=self.membership_for(cluster),
            template_builder=self.template_builder,
            settings=self.settings,
            status_writer=self.status_writer,
            stop=stop,
        )

    async def aclose(self) -> None:
        for http in self._http.values():
            await http.aclose()
        self._http.clear()
        await self.api.close()


async def create_kube_rollout(
    kubeconfig: str | None = None,
    in_cluster: bool = False,
    settings: RolloutSettings | None = None,
    es_url: str = DEFAULT_ES_URL,
    verify: bool | str = True,
    token: str | None = None,
) -> KubeRollout:
    """
    Load cluster credentials and build the Kubernetes collaborators.

    Args:
        kubeconfig: Path to a kubeconfig file (None for the default location)
        in_cluster: Use the pod's service account instead of a kubeconfig
        settings: Rollout settings (defaults to RolloutSettings())
        es_url: Elasticsearch URL template ({name} and {namespace} placeholders)
        verify: TLS verification for membership queries
        token: Optional bearer token for membership queries

    Returns:
        KubeRollout ready to build orchestrators. Call aclose() when done.
    """
    if in_cluster:
        config.load_incluster_config()
    else:
        await config.load_kube_config(config_file=kubeconfig)

    logger.debug(f"Loaded Kubernetes configuration (in_cluster={in_cluster})")
    return KubeRollout(
        api=ApiClient(),
        settings=settings or RolloutSettings(),
        es_url=es_url,
        verify=verify,
        token=token,
    )
