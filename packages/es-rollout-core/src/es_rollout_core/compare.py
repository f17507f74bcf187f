"""
Pod spec difference rule.

A live pod spec differs from the desired one if any of the following differ:
- number of containers
- node selector (None and {} are the same)
- tolerations: strict (same set) when comparing workload templates,
  non-strict (desired is a subset) when comparing running pods, because the
  scheduler may add tolerations to pods
- per container, matched by name: image, args, ports, env, resources, and
  volume mounts (every desired mount present; the cluster injects extra
  token mounts into pods)
- a live container with no desired counterpart
"""

from copy import deepcopy
from decimal import Decimal, InvalidOperation

from es_rollout_protocols import (
    Container,
    EnvVar,
    PodSpec,
    ResourceRequirements,
    Toleration,
    VolumeMount,
)

_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}


def parse_quantity(quantity: str) -> Decimal | str:
    """
    Normalise a resource quantity string ("512Mi", "0.5", "500m").

    Returns the numeric value, or the stripped input when it cannot be
    parsed so that unparseable quantities still compare by text.
    """
    text = str(quantity).strip()
    for suffix, factor in _BINARY_SUFFIXES.items():
        if text.endswith(suffix):
            number, multiplier = text[: -len(suffix)], Decimal(factor)
            break
    else:
        if text and text[-1] in _DECIMAL_SUFFIXES:
            number, multiplier = text[:-1], _DECIMAL_SUFFIXES[text[-1]]
        else:
            number, multiplier = text, Decimal(1)
    try:
        return Decimal(number) * multiplier
    except InvalidOperation:
        return text


def _quantities_same(lhs: dict[str, str], rhs: dict[str, str]) -> bool:
    if set(lhs) != set(rhs):
        return False
    return all(parse_quantity(lhs[k]) == parse_quantity(rhs[k]) for k in lhs)


def resources_same(lhs: ResourceRequirements, rhs: ResourceRequirements) -> bool:
    return _quantities_same(lhs.limits, rhs.limits) and _quantities_same(
        lhs.requests, rhs.requests
    )


def selectors_same(lhs: dict[str, str] | None, rhs: dict[str, str] | None) -> bool:
    return (lhs or {}) == (rhs or {})


def _toleration_key(t: Toleration) -> tuple:
    # Equal and empty operators are interchangeable
    operator = t.operator or "Equal"
    return (t.key, operator, t.value, t.effect, t.toleration_seconds)


def tolerations_same(lhs: list[Toleration], rhs: list[Toleration]) -> bool:
    """Strict check: both sides hold the same tolerations, in any order."""
    return sorted(map(_toleration_key, lhs), key=repr) == sorted(
        map(_toleration_key, rhs), key=repr
    )


def contains_tolerations(live: list[Toleration], desired: list[Toleration]) -> bool:
    """Non-strict check: every desired toleration is present on the live side."""
    live_keys = {_toleration_key(t) for t in live}
    return all(_toleration_key(t) in live_keys for t in desired)


def contains_volume_mounts(live: list[VolumeMount], desired: list[VolumeMount]) -> bool:
    """Every desired mount exists on the live container with the same settings."""
    by_name = {m.name: m for m in live}
    for mount in desired:
        found = by_name.get(mount.name)
        if found is None or found != mount:
            return False
    return True


def env_same(lhs: list[EnvVar], rhs: list[EnvVar]) -> bool:
    """Order-insensitive comparison of environment variables by name."""
    if len(lhs) != len(rhs):
        return False
    right = {e.name: e for e in rhs}
    for var in lhs:
        other = right.get(var.name)
        if other is None:
            return False
        if var.value != other.value or (var.value_from or None) != (
            other.value_from or None
        ):
            return False
    return True


def _container_differs(live: Container, desired: Container) -> bool:
    return (
        not contains_volume_mounts(live.volume_mounts, desired.volume_mounts)
        or live.image != desired.image
        or not env_same(live.env, desired.env)
        or list(live.args) != list(desired.args)
        or list(live.ports) != list(desired.ports)
        or not resources_same(live.resources, desired.resources)
    )


def pod_specs_differ(live: PodSpec, desired: PodSpec, strict_tolerations: bool) -> bool:
    """
    Apply the pod spec difference rule.

    Args:
        live: Pod spec observed on the backend (workload template or pod).
        desired: Pod spec the node group should run.
        strict_tolerations: True when comparing templates, False for pods.

    Returns:
        True if the live spec must be considered changed.
    """
    if len(live.containers) != len(desired.containers):
        return True

    if not selectors_same(live.node_selector, desired.node_selector):
        return True

    if strict_tolerations:
        if not tolerations_same(live.tolerations, desired.tolerations):
            return True
    elif not contains_tolerations(live.tolerations, desired.tolerations):
        return True

    desired_by_name = {c.name: c for c in desired.containers}
    for container in live.containers:
        counterpart = desired_by_name.get(container.name)
        if counterpart is None:
            return True
        if _container_differs(container, counterpart):
            return True

    return False


def templates_differ(live: PodSpec, desired: PodSpec) -> bool:
    """Compare two workload templates (strict tolerations)."""
    return pod_specs_differ(live, desired, strict_tolerations=True)


def updatable_template(current: PodSpec, desired: PodSpec) -> PodSpec:
    """
    Merge the desired template into a copy of the live one.

    Containers, node selector and tolerations are taken from desired; live
    template labels are kept and overlaid with the desired labels.
    """
    merged = deepcopy(current)
    merged.containers = deepcopy(desired.containers)
    merged.node_selector = dict(desired.node_selector)
    merged.tolerations = deepcopy(desired.tolerations)
    merged.labels = {**current.labels, **desired.labels}
    return merged
