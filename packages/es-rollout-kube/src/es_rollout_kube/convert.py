"""
Conversions between kubernetes_asyncio models and the rollout data model.

Reading maps V1Deployment / V1StatefulSet / V1Pod onto Workload / Pod,
keeping the native object in Workload.raw. Writing goes the other way: the
fields the rollout core manages (replicas, pause, partition, labels,
annotations, the compared pod template parts) are applied onto a copy of the
native object, so fields the data model does not carry survive a replace.

Environment variable sources are kept in their serialized (camelCase) form,
which both compares structurally and can be sent back to the API as-is.
"""

from collections.abc import Callable
from copy import deepcopy
from typing import Any

from kubernetes_asyncio.client import (
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EnvVar,
    V1LabelSelector,
    V1ObjectMeta,
    V1Pod,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1RollingUpdateStatefulSetStrategy,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1StatefulSetUpdateStrategy,
    V1Toleration,
    V1VolumeMount,
)

from es_rollout_protocols import (
    Container,
    ContainerPort,
    EnvVar,
    Pod,
    PodSpec,
    ResourceRequirements,
    Toleration,
    VolumeMount,
    Workload,
    WorkloadKind,
)

from es_rollout_core.topology import CLUSTER_NAME_LABEL, NODE_NAME_LABEL

from es_rollout_kube.templates import volume_for_mount

DEPLOYMENT_REVISION_ANNOTATION = "deployment.kubernetes.io/revision"

Serializer = Callable[[Any], Any]


# =============================================================================
# Native -> data model
# =============================================================================


def _env_from_native(env: V1EnvVar, serialize: Serializer) -> EnvVar:
    return EnvVar(
        name=env.name,
        value=env.value or "",
        value_from=serialize(env.value_from) if env.value_from is not None else None,
    )


def _resources_from_native(resources: V1ResourceRequirements | None) -> ResourceRequirements:
    if resources is None:
        return ResourceRequirements()
    return ResourceRequirements(
        limits={k: str(v) for k, v in (resources.limits or {}).items()},
        requests={k: str(v) for k, v in (resources.requests or {}).items()},
    )


def container_from_native(container: V1Container, serialize: Serializer) -> Container:
    return Container(
        name=container.name,
        image=container.image or "",
        args=list(container.args or []),
        env=[_env_from_native(e, serialize) for e in container.env or []],
        ports=[
            ContainerPort(
                container_port=p.container_port,
                name=p.name or "",
                protocol=p.protocol or "TCP",
            )
            for p in container.ports or []
        ],
        volume_mounts=[
            VolumeMount(
                name=m.name,
                mount_path=m.mount_path,
                read_only=bool(m.read_only),
                sub_path=m.sub_path or "",
            )
            for m in container.volume_mounts or []
        ],
        resources=_resources_from_native(container.resources),
    )


def pod_spec_from_native(
    spec: V1PodSpec | None, labels: dict[str, str] | None, serialize: Serializer
) -> PodSpec:
    if spec is None:
        return PodSpec(labels=dict(labels or {}))
    return PodSpec(
        containers=[container_from_native(c, serialize) for c in spec.containers or []],
        node_selector=dict(spec.node_selector or {}),
        tolerations=[
            Toleration(
                key=t.key or "",
                operator=t.operator or "",
                value=t.value or "",
                effect=t.effect or "",
                toleration_seconds=t.toleration_seconds,
            )
            for t in spec.tolerations or []
        ],
        labels=dict(labels or {}),
    )


def _template_from_native(template: V1PodTemplateSpec | None, serialize: Serializer) -> PodSpec:
    if template is None:
        return PodSpec()
    labels = template.metadata.labels if template.metadata else None
    return pod_spec_from_native(template.spec, labels, serialize)


def deployment_to_workload(deployment: V1Deployment, serialize: Serializer) -> Workload:
    meta = deployment.metadata
    spec = deployment.spec
    status = deployment.status
    annotations = dict(meta.annotations or {})
    return Workload(
        name=meta.name,
        namespace=meta.namespace,
        kind=WorkloadKind.DEPLOYMENT,
        replicas=spec.replicas if spec.replicas is not None else 1,
        template=_template_from_native(spec.template, serialize),
        paused=bool(spec.paused),
        labels=dict(meta.labels or {}),
        annotations=annotations,
        revision=annotations.get(DEPLOYMENT_REVISION_ANNOTATION, ""),
        ready_replicas=(status.ready_replicas or 0) if status else 0,
        status_replicas=(status.replicas or 0) if status else 0,
        resource_version=meta.resource_version or "",
        raw=deployment,
    )


def stateful_set_to_workload(stateful_set: V1StatefulSet, serialize: Serializer) -> Workload:
    meta = stateful_set.metadata
    spec = stateful_set.spec
    status = stateful_set.status

    partition = None
    strategy = spec.update_strategy
    if strategy is not None and strategy.rolling_update is not None:
        partition = strategy.rolling_update.partition

    return Workload(
        name=meta.name,
        namespace=meta.namespace,
        kind=WorkloadKind.STATEFUL_SET,
        replicas=spec.replicas if spec.replicas is not None else 1,
        template=_template_from_native(spec.template, serialize),
        partition=partition,
        labels=dict(meta.labels or {}),
        annotations=dict(meta.annotations or {}),
        revision=(status.update_revision or "") if status else "",
        ready_replicas=(status.ready_replicas or 0) if status else 0,
        status_replicas=(status.replicas or 0) if status else 0,
        resource_version=meta.resource_version or "",
        raw=stateful_set,
    )


def pod_to_model(pod: V1Pod, serialize: Serializer) -> Pod:
    labels = dict(pod.metadata.labels or {})
    conditions = pod.status.conditions if pod.status else None
    ready = any(c.type == "Ready" and c.status == "True" for c in conditions or [])
    return Pod(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace,
        spec=pod_spec_from_native(pod.spec, labels, serialize),
        labels=labels,
        ready=ready,
    )


# =============================================================================
# Data model -> native
# =============================================================================


def _env_to_native(env: EnvVar) -> V1EnvVar:
    if env.value_from is not None:
        return V1EnvVar(name=env.name, value_from=env.value_from)
    return V1EnvVar(name=env.name, value=env.value)


def _apply_container(native: V1Container, container: Container) -> V1Container:
    native.image = container.image
    native.args = list(container.args) or None
    native.env = [_env_to_native(e) for e in container.env] or None
    native.ports = [
        V1ContainerPort(container_port=p.container_port, name=p.name or None, protocol=p.protocol)
        for p in container.ports
    ] or None
    native.volume_mounts = [
        V1VolumeMount(
            name=m.name,
            mount_path=m.mount_path,
            read_only=m.read_only or None,
            sub_path=m.sub_path or None,
        )
        for m in container.volume_mounts
    ] or None
    native.resources = V1ResourceRequirements(
        limits=dict(container.resources.limits) or None,
        requests=dict(container.resources.requests) or None,
    )
    return native


def apply_pod_spec(native: V1PodSpec, spec: PodSpec) -> V1PodSpec:
    """Write the compared parts of a PodSpec onto a native pod spec."""
    existing = {c.name: c for c in native.containers or []}
    native.containers = [
        _apply_container(existing.get(c.name) or V1Container(name=c.name), c)
        for c in spec.containers
    ]
    native.node_selector = dict(spec.node_selector) or None
    native.tolerations = [
        V1Toleration(
            key=t.key or None,
            operator=t.operator or None,
            value=t.value or None,
            effect=t.effect or None,
            toleration_seconds=t.toleration_seconds,
        )
        for t in spec.tolerations
    ] or None
    return native


def _ensure_volumes(native: V1PodSpec, spec: PodSpec) -> None:
    """Add a backing volume for every mount that has none yet."""
    cluster_name = spec.labels.get(CLUSTER_NAME_LABEL, "")
    volumes = list(native.volumes or [])
    present = {v.name for v in volumes}
    for container in spec.containers:
        for mount in container.volume_mounts:
            if mount.name not in present:
                present.add(mount.name)
                volumes.append(volume_for_mount(mount.name, cluster_name))
    native.volumes = volumes or None


def _apply_template(native: V1PodTemplateSpec | None, spec: PodSpec) -> V1PodTemplateSpec:
    if native is None:
        native = V1PodTemplateSpec()
    if native.metadata is None:
        native.metadata = V1ObjectMeta()
    if native.spec is None:
        native.spec = V1PodSpec(containers=[])
    native.metadata.labels = dict(spec.labels) or None
    apply_pod_spec(native.spec, spec)
    _ensure_volumes(native.spec, spec)
    return native


def _selector(workload: Workload) -> V1LabelSelector:
    labels = workload.template.labels or workload.labels
    match = {k: labels[k] for k in (CLUSTER_NAME_LABEL, NODE_NAME_LABEL) if k in labels}
    return V1LabelSelector(match_labels=match or dict(labels))


def _metadata(native: V1ObjectMeta | None, workload: Workload) -> V1ObjectMeta:
    meta = native or V1ObjectMeta()
    meta.name = workload.name
    meta.namespace = workload.namespace
    meta.labels = dict(workload.labels) or None
    meta.annotations = dict(workload.annotations) or None
    meta.resource_version = workload.resource_version or None
    return meta


def workload_to_deployment(workload: Workload) -> V1Deployment:
    """Build (or update a copy of workload.raw into) a V1Deployment."""
    deployment = deepcopy(workload.raw) if workload.raw is not None else V1Deployment(
        api_version="apps/v1", kind="Deployment"
    )
    deployment.metadata = _metadata(deployment.metadata, workload)
    if deployment.spec is None:
        deployment.spec = V1DeploymentSpec(
            selector=_selector(workload), template=V1PodTemplateSpec()
        )
    deployment.spec.replicas = workload.replicas
    deployment.spec.paused = workload.paused
    deployment.spec.template = _apply_template(deployment.spec.template, workload.template)
    return deployment


def workload_to_stateful_set(workload: Workload) -> V1StatefulSet:
    """Build (or update a copy of workload.raw into) a V1StatefulSet."""
    stateful_set = deepcopy(workload.raw) if workload.raw is not None else V1StatefulSet(
        api_version="apps/v1", kind="StatefulSet"
    )
    stateful_set.metadata = _metadata(stateful_set.metadata, workload)
    if stateful_set.spec is None:
        stateful_set.spec = V1StatefulSetSpec(
            selector=_selector(workload),
            service_name=workload.name,
            template=V1PodTemplateSpec(),
        )
    stateful_set.spec.replicas = workload.replicas
    stateful_set.spec.update_strategy = V1StatefulSetUpdateStrategy(
        type="RollingUpdate",
        rolling_update=V1RollingUpdateStatefulSetStrategy(
            partition=workload.partition if workload.partition is not None else 0
        ),
    )
    stateful_set.spec.template = _apply_template(stateful_set.spec.template, workload.template)
    return stateful_set
