"""
Factory for creating backend collaborators.

Uses lazy imports to avoid loading binding packages (and their client
libraries) unless the chosen backend needs them.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from es_rollout_kube.factory import KubeRollout

# Hardcoded list of available backends
AVAILABLE_BACKENDS = ["kube"]


async def create_backend(backend_name: str, **kwargs: Any) -> "KubeRollout":
    """
    Factory function to create the collaborators of a backend.

    Args:
        backend_name: Backend identifier (e.g., "kube")
        **kwargs: Backend-specific configuration (kubeconfig, URLs, etc.)

    Returns:
        Object exposing make_orchestrator(), cluster_source() and aclose()

    Raises:
        ValueError: If backend_name is not recognized

    Example:
        rollout = await create_backend(
            "kube",
            kubeconfig="~/.kube/config",
            es_url="https://{name}.{namespace}.svc:9200",
        )
    """
    if backend_name == "kube":
        # Lazy import to avoid loading kubernetes_asyncio unless needed
        from es_rollout_kube.factory import create_kube_rollout

        return await create_kube_rollout(**kwargs)
    raise ValueError(
        f"Unknown backend '{backend_name}'. "
        f"Available backends: {', '.join(AVAILABLE_BACKENDS)}"
    )
