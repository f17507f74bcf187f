"""
Tests for bundle fingerprinting.

Covers digest determinism, volatile key exclusion, the absent-bundle
degradation to the empty fingerprint, and fingerprint comparison decisions.
"""

import hashlib

import pytest

from es_rollout_protocols import BundleKind, BundleRef

from es_rollout_core.fingerprint import (
    EMPTY_BUNDLE_FINGERPRINT,
    EMPTY_FINGERPRINT,
    FingerprintDecision,
    compare_fingerprints,
    fingerprint_data,
)


def _sha(value: bytes) -> str:
    return hashlib.sha256(value).hexdigest()


class TestFingerprintData:
    """Tests for the digest of bundle contents."""

    def test_digests_joined_in_sorted_key_order(self):
        """Per-key digests should be concatenated in lexicographic key order."""
        digest = fingerprint_data({"b": "two", "a": "one"})
        assert digest == _sha(b"one") + _sha(b"two")

    def test_insertion_order_does_not_matter(self):
        """Equal contents should fingerprint equally regardless of dict order."""
        assert fingerprint_data({"x": "1", "y": "2"}) == fingerprint_data({"y": "2", "x": "1"})

    def test_volatile_keys_are_skipped(self):
        """Changing only a volatile key should not change the fingerprint."""
        before = fingerprint_data({"es.yml": "a", "index_settings": "1"}, {"index_settings"})
        after = fingerprint_data({"es.yml": "a", "index_settings": "2"}, {"index_settings"})
        assert before == after == _sha(b"a")

    def test_bytes_and_text_hash_identically(self):
        """str values should be hashed as their UTF-8 bytes."""
        assert fingerprint_data({"k": "v"}) == fingerprint_data({"k": b"v"})

    def test_empty_bundle_is_not_absent(self):
        """A bundle with no keys should not fingerprint like an absent one."""
        assert fingerprint_data({}) == EMPTY_BUNDLE_FINGERPRINT == _sha(b"")
        assert fingerprint_data({}) != EMPTY_FINGERPRINT

    def test_only_volatile_keys_is_not_absent(self):
        """A bundle holding only volatile keys should yield the empty-bundle digest."""
        digest = fingerprint_data({"index_settings": "1"}, {"index_settings"})
        assert digest == EMPTY_BUNDLE_FINGERPRINT


class TestCompareFingerprints:
    """Tests for classifying a current fingerprint against the recorded one."""

    @pytest.mark.parametrize(
        "recorded,current,expected",
        [
            ("abc", "abc", FingerprintDecision.UNCHANGED),
            ("", "", FingerprintDecision.UNCHANGED),
            ("", "abc", FingerprintDecision.ADOPT),
            ("abc", "", FingerprintDecision.VANISHED),
            ("abc", "def", FingerprintDecision.CHANGED),
        ],
    )
    def test_decisions(self, recorded, current, expected):
        """Each recorded/current combination should map to one decision."""
        assert compare_fingerprints(recorded, current) == expected


class TestConfigFingerprinter:
    """Tests for fetching and fingerprinting bundles through stores."""

    @pytest.mark.asyncio
    async def test_config_bundle_excludes_index_settings(self, fingerprinter, config_store):
        """The config bundle fingerprint should ignore index_settings."""
        ref = BundleRef("elasticsearch", "logging", BundleKind.CONFIG)
        before = await fingerprinter.fingerprint(ref)

        config_store.set(
            {"elasticsearch.yml": "cluster.name: elasticsearch", "index_settings": "shards: 5"}
        )
        assert await fingerprinter.fingerprint(ref) == before

    @pytest.mark.asyncio
    async def test_credential_bundle_has_no_volatile_keys(self, fingerprinter, secret_store):
        """A credential key named like a volatile key should still be hashed."""
        ref = BundleRef("elasticsearch", "logging", BundleKind.CREDENTIAL)
        secret_store.set({"index_settings": b"one"})
        first = await fingerprinter.fingerprint(ref)
        secret_store.set({"index_settings": b"two"})
        assert await fingerprinter.fingerprint(ref) != first

    @pytest.mark.asyncio
    async def test_absent_bundle_is_empty(self, fingerprinter, secret_store):
        """A missing bundle should fingerprint to the empty string, not raise."""
        secret_store.remove()
        ref = BundleRef("elasticsearch", "logging", BundleKind.CREDENTIAL)
        assert await fingerprinter.fingerprint(ref) == EMPTY_FINGERPRINT

    @pytest.mark.asyncio
    async def test_store_failure_is_empty(self, fingerprinter, config_store):
        """An unreadable bundle should degrade to the empty fingerprint."""
        config_store.fail = True
        ref = BundleRef("elasticsearch", "logging", BundleKind.CONFIG)
        assert await fingerprinter.fingerprint(ref) == EMPTY_FINGERPRINT

    @pytest.mark.asyncio
    async def test_emptied_bundle_is_changed(self, fingerprinter, config_store):
        """Emptying a recorded bundle should read as a change, not a vanished bundle."""
        ref = BundleRef("elasticsearch", "logging", BundleKind.CONFIG)
        recorded = await fingerprinter.fingerprint(ref)
        config_store.set({"index_settings": "shards: 2"})

        current = await fingerprinter.fingerprint(ref)

        assert compare_fingerprints(recorded, current) == FingerprintDecision.CHANGED

    @pytest.mark.asyncio
    async def test_fingerprint_changes_with_content(self, fingerprinter, secret_store):
        """Rotating a credential should change its fingerprint."""
        ref = BundleRef("elasticsearch", "logging", BundleKind.CREDENTIAL)
        before = await fingerprinter.fingerprint(ref)
        secret_store.set({"admin-cert": b"cert-v2", "admin-key": b"key-v1"})
        assert await fingerprinter.fingerprint(ref) != before
