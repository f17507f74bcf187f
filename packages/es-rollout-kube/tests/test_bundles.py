"""Tests for the config map and secret bundle stores."""

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes_asyncio.client import V1ConfigMap, V1ObjectMeta, V1Secret
from kubernetes_asyncio.client.exceptions import ApiException

from es_rollout_protocols import (
    BackendError,
    BundleKind,
    BundleStoreProtocol,
    NotFoundError,
    ObjectKey,
)

from es_rollout_kube.bundles import ConfigMapStore, SecretStore

KEY = ObjectKey("elasticsearch", "logging")


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode()


@pytest.fixture
def core():
    core = MagicMock()
    core.read_namespaced_config_map = AsyncMock()
    core.read_namespaced_secret = AsyncMock()
    return core


class TestProtocolCompliance:
    def test_stores_are_bundle_store_protocol(self, core):
        """Both stores should pass isinstance check for BundleStoreProtocol."""
        assert isinstance(ConfigMapStore(core), BundleStoreProtocol)
        assert isinstance(SecretStore(core), BundleStoreProtocol)


class TestConfigMapStore:
    """Tests for configuration bundles."""

    @pytest.mark.asyncio
    async def test_text_and_binary_data(self, core):
        """Text entries stay text, binary entries are decoded to bytes."""
        core.read_namespaced_config_map.return_value = V1ConfigMap(
            metadata=V1ObjectMeta(name="elasticsearch", namespace="logging"),
            data={"elasticsearch.yml": "cluster.name: elasticsearch"},
            binary_data={"keystore": b64(b"\x00\x01")},
        )

        bundle = await ConfigMapStore(core).get(KEY)

        core.read_namespaced_config_map.assert_awaited_once_with("elasticsearch", "logging")
        assert bundle.kind == BundleKind.CONFIG
        assert bundle.data == {
            "elasticsearch.yml": "cluster.name: elasticsearch",
            "keystore": b"\x00\x01",
        }

    @pytest.mark.asyncio
    async def test_missing(self, core):
        core.read_namespaced_config_map.side_effect = ApiException(status=404)

        with pytest.raises(NotFoundError):
            await ConfigMapStore(core).get(KEY)


class TestSecretStore:
    """Tests for credential bundles."""

    @pytest.mark.asyncio
    async def test_values_decoded(self, core):
        core.read_namespaced_secret.return_value = V1Secret(
            data={"admin-cert": b64(b"cert"), "admin-key": b64(b"key")}
        )

        bundle = await SecretStore(core).get(KEY)

        assert bundle.kind == BundleKind.CREDENTIAL
        assert bundle.data == {"admin-cert": b"cert", "admin-key": b"key"}

    @pytest.mark.asyncio
    async def test_empty_secret(self, core):
        core.read_namespaced_secret.return_value = V1Secret(data=None)
        assert (await SecretStore(core).get(KEY)).data == {}

    @pytest.mark.asyncio
    async def test_invalid_base64(self, core):
        core.read_namespaced_secret.return_value = V1Secret(data={"admin-key": "not base64!"})

        with pytest.raises(BackendError, match="base64"):
            await SecretStore(core).get(KEY)

    @pytest.mark.asyncio
    async def test_forbidden(self, core):
        core.read_namespaced_secret.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(BackendError) as exc_info:
            await SecretStore(core).get(KEY)

        assert not isinstance(exc_info.value, NotFoundError)
