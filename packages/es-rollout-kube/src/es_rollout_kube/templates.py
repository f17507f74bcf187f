"""
Minimal Elasticsearch pod template builder.

Renders one elasticsearch container per node group: image, role and shard
environment, transport/HTTP ports, the config and certificate mounts, and the
node-level (falling back to cluster-level) resources, node selector and
tolerations. Mounts are backed by the cluster's config map and secret (both
named after the cluster) and an emptyDir data volume.
"""

from kubernetes_asyncio.client import (
    V1ConfigMapVolumeSource,
    V1EmptyDirVolumeSource,
    V1SecretVolumeSource,
    V1Volume,
)

from es_rollout_protocols import (
    Container,
    ContainerPort,
    EnvVar,
    PodSpec,
    ResourceRequirements,
    Toleration,
    VolumeMount,
)

from es_rollout_core.topology import GroupSpec, primary_shard_count, replica_shard_count
from es_rollout_core.types import ElasticsearchCluster, NodeRole

CONTAINER_NAME = "elasticsearch"
CONFIG_MOUNT_PATH = "/usr/share/java/elasticsearch/config"
CERTIFICATES_MOUNT_PATH = "/etc/openshift/elasticsearch/secret"
DATA_MOUNT_PATH = "/elasticsearch/persistent"
STORAGE_VOLUME = "elasticsearch-storage"
CONFIG_VOLUME = "elasticsearch-config"
CERTIFICATES_VOLUME = "certificates"
HTTP_PORT = 9200
TRANSPORT_PORT = 9300


class ElasticsearchPodTemplateBuilder:
    """PodTemplateBuilderProtocol rendering the elasticsearch container."""

    def build(self, cluster: ElasticsearchCluster, group: GroupSpec) -> PodSpec:
        node = group.node
        resources = node.resources or cluster.spec.resources
        tolerations = node.tolerations if node.tolerations is not None else cluster.spec.tolerations
        node_selector = node.node_selector if node.node_selector is not None else cluster.spec.node_selector

        env = [
            EnvVar(name="DC_NAME", value=group.name),
            EnvVar(
                name="NAMESPACE",
                value_from={"fieldRef": {"apiVersion": "v1", "fieldPath": "metadata.namespace"}},
            ),
            EnvVar(name="CLUSTER_NAME", value=cluster.name),
            EnvVar(name="IS_MASTER", value=str(NodeRole.MASTER in group.roles).lower()),
            EnvVar(name="HAS_DATA", value=str(NodeRole.DATA in group.roles).lower()),
            EnvVar(name="PRIMARY_SHARDS", value=str(primary_shard_count(cluster))),
            EnvVar(name="REPLICA_SHARDS", value=str(replica_shard_count(cluster))),
        ]
        if resources.limits.get("memory"):
            env.append(EnvVar(name="INSTANCE_RAM", value=resources.limits["memory"]))

        container = Container(
            name=CONTAINER_NAME,
            image=cluster.spec.image,
            env=env,
            ports=[
                ContainerPort(container_port=HTTP_PORT, name="restapi"),
                ContainerPort(container_port=TRANSPORT_PORT, name="cluster"),
            ],
            volume_mounts=[
                VolumeMount(name=STORAGE_VOLUME, mount_path=DATA_MOUNT_PATH),
                VolumeMount(name=CONFIG_VOLUME, mount_path=CONFIG_MOUNT_PATH),
                VolumeMount(name=CERTIFICATES_VOLUME, mount_path=CERTIFICATES_MOUNT_PATH),
            ],
            resources=ResourceRequirements(
                limits=dict(resources.limits), requests=dict(resources.requests)
            ),
        )

        return PodSpec(
            containers=[container],
            node_selector=dict(node_selector),
            tolerations=[
                Toleration(
                    key=t.key,
                    operator=t.operator,
                    value=t.value,
                    effect=t.effect,
                    toleration_seconds=t.toleration_seconds,
                )
                for t in tolerations
            ],
            labels=group.labels,
        )


def volume_for_mount(mount_name: str, cluster_name: str) -> V1Volume:
    """Native volume backing one of the builder's mounts."""
    if mount_name == CONFIG_VOLUME:
        return V1Volume(name=mount_name, config_map=V1ConfigMapVolumeSource(name=cluster_name))
    if mount_name == CERTIFICATES_VOLUME:
        return V1Volume(name=mount_name, secret=V1SecretVolumeSource(secret_name=cluster_name))
    return V1Volume(name=mount_name, empty_dir=V1EmptyDirVolumeSource())
