"""
Configuration and credential bundle fingerprinting.

A fingerprint is the concatenation, in lexicographic key order, of the
hex SHA-256 digest of each key's value, skipping keys marked volatile
(generated payloads such as the rendered index settings, which change with
the topology without requiring a node restart).

Two bundles are considered equal iff their fingerprints are equal. This is a
drift detector, not a cryptographic equality proof.

An absent bundle fingerprints to the empty string. Callers interpret that
with compare_fingerprints():
- nothing recorded yet: adopt the current fingerprint, no change
- recorded and current differ (both non-empty): changed
- recorded but the bundle vanished: anomaly, recorded value kept
"""

import hashlib
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from es_rollout_protocols import (
    BackendError,
    BundleKind,
    BundleRef,
    BundleStoreProtocol,
    NotFoundError,
)

logger = logging.getLogger(__name__)

EMPTY_FINGERPRINT = ""
"""Digest of an absent or unreadable bundle ("unknown, assume unchanged")."""

EMPTY_BUNDLE_FINGERPRINT = hashlib.sha256(b"").hexdigest()
"""Digest of a bundle that exists but has no hashed keys."""

DEFAULT_VOLATILE_KEYS = frozenset({"index_settings"})


def fingerprint_data(
    data: Mapping[str, str | bytes],
    volatile_keys: Iterable[str] = (),
) -> str:
    """
    Compute the fingerprint of bundle contents.

    Args:
        data: Bundle key/value pairs. str values are hashed as UTF-8.
        volatile_keys: Keys excluded from the digest.

    Returns:
        Concatenated per-key hex digests in sorted key order. A bundle with
        no hashed keys yields EMPTY_BUNDLE_FINGERPRINT, never the empty
        string reserved for absent bundles.
    """
    skip = set(volatile_keys)
    parts = []
    for key in sorted(data):
        if key in skip:
            continue
        value = data[key]
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        parts.append(hashlib.sha256(raw).hexdigest())
    return "".join(parts) or EMPTY_BUNDLE_FINGERPRINT


class FingerprintDecision(str, Enum):
    """How a freshly read fingerprint relates to the recorded one."""

    UNCHANGED = "unchanged"
    ADOPT = "adopt"
    CHANGED = "changed"
    VANISHED = "vanished"


def compare_fingerprints(recorded: str, current: str) -> FingerprintDecision:
    """
    Classify a current fingerprint against the last recorded one.

    Returns:
        ADOPT when nothing was recorded yet (first encounter, e.g. after an
        operator restart), VANISHED when a recorded bundle can no longer be
        read, CHANGED when both are known and differ, else UNCHANGED.
    """
    if recorded == current:
        return FingerprintDecision.UNCHANGED
    if recorded == EMPTY_FINGERPRINT:
        return FingerprintDecision.ADOPT
    if current == EMPTY_FINGERPRINT:
        return FingerprintDecision.VANISHED
    return FingerprintDecision.CHANGED


@dataclass
class ConfigFingerprinter:
    """
    Computes fingerprints of bundles fetched from per-kind stores.

    Attributes:
        stores: Bundle store per bundle kind.
        volatile_keys: Configuration keys excluded from the digest.
            Credential bundles have no volatile keys.

    Example:
        fingerprinter = ConfigFingerprinter(
            stores={BundleKind.CONFIG: configmaps, BundleKind.CREDENTIAL: secrets},
        )
        digest = await fingerprinter.fingerprint(
            BundleRef("elasticsearch", "logging", BundleKind.CONFIG)
        )
    """

    stores: dict[BundleKind, BundleStoreProtocol]
    volatile_keys: frozenset[str] = field(default=DEFAULT_VOLATILE_KEYS)

    async def fingerprint(self, ref: BundleRef) -> str:
        """
        Fetch a bundle and fingerprint its contents.

        Never raises for an absent or unreadable bundle: both degrade to the
        empty fingerprint, read as "unknown, assume unchanged".

        Args:
            ref: Bundle name, namespace and kind.

        Returns:
            The bundle fingerprint, or EMPTY_FINGERPRINT.
        """
        store = self.stores.get(ref.kind)
        if store is None:
            logger.warning("No bundle store configured for %s", ref.kind.value)
            return EMPTY_FINGERPRINT

        try:
            bundle = await store.get(ref.key)
        except NotFoundError:
            return EMPTY_FINGERPRINT
        except BackendError as e:
            logger.warning(
                "Could not read %s %s, assuming unchanged: %s",
                ref.kind.value,
                ref.key,
                e,
            )
            return EMPTY_FINGERPRINT

        volatile = self.volatile_keys if ref.kind == BundleKind.CONFIG else ()
        return fingerprint_data(bundle.data, volatile)
