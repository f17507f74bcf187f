"""
Backend error taxonomy.

Backends translate their native failures into these exceptions so the rollout
core can tell expected signals (not found, already exists, conflict) apart from
genuine I/O failures.

Per project patterns:
- Inherit from a common base so callers can catch every backend failure
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class BackendError(Exception):
    """
    Any failure reported by a workload backend, bundle store or membership
    client.

    Attributes:
        kind: Resource kind the call addressed (e.g. "Deployment").
        name: Object name, empty for list calls.
        namespace: Object namespace.
    """

    def __init__(
        self,
        message: str,
        kind: str = "",
        name: str = "",
        namespace: str = "",
    ) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(message)


class NotFoundError(BackendError):
    """Raised when the addressed object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str) -> None:
        super().__init__(
            f"{kind} {namespace}/{name} not found",
            kind=kind,
            name=name,
            namespace=namespace,
        )


class AlreadyExistsError(BackendError):
    """Raised by create when an object with the same key already exists."""

    def __init__(self, kind: str, name: str, namespace: str) -> None:
        super().__init__(
            f"{kind} {namespace}/{name} already exists",
            kind=kind,
            name=name,
            namespace=namespace,
        )


class ConflictError(BackendError):
    """
    Raised by replace when the object changed since it was read.

    The resource version the caller presented no longer matches the stored
    one; the caller must re-read and re-apply its mutation.
    """

    def __init__(self, kind: str, name: str, namespace: str, detail: str = "") -> None:
        message = f"{kind} {namespace}/{name} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, kind=kind, name=name, namespace=namespace)
