"""
Kubernetes bundle stores.

ConfigMapStore and SecretStore implement BundleStoreProtocol for the
configuration and credential bundles of a cluster. Secret values arrive
base64-encoded and are decoded to bytes; config map values are text, binary
config map entries are decoded to bytes.
"""

import base64
import binascii

from kubernetes_asyncio.client import CoreV1Api
from kubernetes_asyncio.client.exceptions import ApiException

from es_rollout_protocols import Bundle, BundleKind, BackendError, ObjectKey

from es_rollout_kube.backend import translate_api_error


def _decode(values: dict[str, str] | None, kind: BundleKind, key: ObjectKey) -> dict[str, bytes]:
    try:
        return {k: base64.b64decode(v) for k, v in (values or {}).items()}
    except (binascii.Error, ValueError) as e:
        raise BackendError(
            f"{kind.value} {key} holds a value that is not valid base64",
            kind=kind.value,
            name=key.name,
            namespace=key.namespace,
        ) from e


class ConfigMapStore:
    """BundleStoreProtocol for configuration bundles held in config maps."""

    kind = BundleKind.CONFIG

    def __init__(self, core: CoreV1Api) -> None:
        self.core = core

    async def get(self, key: ObjectKey) -> Bundle:
        try:
            config_map = await self.core.read_namespaced_config_map(key.name, key.namespace)
        except ApiException as e:
            raise translate_api_error(e, self.kind.value, key.name, key.namespace, "get") from e

        data: dict[str, str | bytes] = dict(config_map.data or {})
        data.update(_decode(config_map.binary_data, self.kind, key))
        return Bundle(name=key.name, namespace=key.namespace, kind=self.kind, data=data)


class SecretStore:
    """BundleStoreProtocol for credential bundles held in secrets."""

    kind = BundleKind.CREDENTIAL

    def __init__(self, core: CoreV1Api) -> None:
        self.core = core

    async def get(self, key: ObjectKey) -> Bundle:
        try:
            secret = await self.core.read_namespaced_secret(key.name, key.namespace)
        except ApiException as e:
            raise translate_api_error(e, self.kind.value, key.name, key.namespace, "get") from e

        return Bundle(
            name=key.name,
            namespace=key.namespace,
            kind=self.kind,
            data=dict(_decode(secret.data, self.kind, key)),
        )
