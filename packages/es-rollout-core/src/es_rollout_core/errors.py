"""
Rollout error classes.

This module defines the failures the rollout core itself raises on top of the
backend taxonomy in es_rollout_protocols.errors:
- RolloutTimeoutError: a bounded wait exceeded its deadline
- WaitCancelledError: a wait was interrupted by shutdown
- ConflictRetriesExhaustedError: optimistic-concurrency retries ran out
- NodeGroupError: any failure of a node group operation, with identity
- TopologyError: the declared topology cannot be rolled out safely

Per project patterns:
- Store context data in attributes for error handling
- Include descriptive message with relevant details
- Chain the underlying cause with ``raise ... from``
"""

from es_rollout_protocols.errors import ConflictError


class RolloutError(Exception):
    """Base class for errors raised by the rollout core."""


class RolloutTimeoutError(RolloutError):
    """
    Raised when a bounded wait exceeds its deadline.

    Attributes:
        description: What was being waited for
        timeout_seconds: The deadline that was exceeded
    """

    def __init__(self, description: str, timeout_seconds: float) -> None:
        self.description = description
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds:.1f}s waiting for {description}"
        )


class WaitCancelledError(RolloutError):
    """
    Raised when shutdown is requested while a wait is in progress.

    The node group is left as last durably written; nothing is rolled back.

    Attributes:
        description: What was being waited for
    """

    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"Cancelled while waiting for {description}")


class ConflictRetriesExhaustedError(ConflictError):
    """
    Raised when a read-modify-write keeps conflicting after every retry.

    Attributes:
        attempts: Number of write attempts made
    """

    def __init__(self, kind: str, name: str, namespace: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            kind, name, namespace, detail=f"gave up after {attempts} attempts"
        )


class NodeGroupError(RolloutError):
    """
    Raised when a node group operation fails.

    Wraps the underlying failure with enough identity to diagnose it; the
    original exception is available as ``__cause__``.

    Attributes:
        cluster: Name of the cluster the group belongs to
        group: Node group name
        namespace: Namespace of the cluster
        operation: Operation that failed (e.g. "unpause")
    """

    def __init__(
        self,
        message: str,
        cluster: str,
        group: str,
        namespace: str,
        operation: str = "",
    ) -> None:
        self.cluster = cluster
        self.group = group
        self.namespace = namespace
        self.operation = operation
        super().__init__(
            f"{message} (cluster={cluster}, group={group}, namespace={namespace})"
        )

    @property
    def is_timeout(self) -> bool:
        """True if the underlying failure was a wait deadline."""
        return isinstance(self.__cause__, RolloutTimeoutError)


class TopologyError(RolloutError):
    """Raised when the declared topology is invalid or unsafe to apply."""
