"""
Read-modify-write with bounded optimistic-concurrency retry.

This module provides RetryConfig for calculating retry delays with
exponential backoff and jitter, and update_with_retry, the single
conditional-update primitive every workload mutation goes through.

The primitive is parameterized by the accessor pair of the resource kind
(get, replace) plus a compare and a mutate function, so it serves any
backend resource kind:
- compare(current, desired) returns True when an update is needed
- mutate(current, desired) applies the desired values onto current in place

Defaults mirror the cluster API client's default conflict retry: five
attempts, 10ms apart, 10% jitter, no exponential growth.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from es_rollout_protocols import ConflictError, ObjectKey, OperationResult

from es_rollout_core.errors import ConflictRetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CompareFunc = Callable[[T, T], bool]
MutateFunc = Callable[[T, T], None]


@dataclass
class RetryConfig:
    """
    Configuration for conflict retry behavior.

    Uses exponential backoff with jitter to spread out retry attempts
    when several writers race on the same object.

    Attributes:
        max_attempts: Maximum number of write attempts (default 5)
        min_wait_seconds: Wait before the first retry (default 0.01)
        max_wait_seconds: Maximum wait between retries (default 1.0)
        exponential_base: Base for exponential calculation (default 1.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.1)

    Example:
        config = RetryConfig(max_attempts=3, exponential_base=2.0)
        delay = config.calculate_delay(attempt=1)
        # Returns ~0.02-0.022 seconds (0.02s base + jitter)
    """

    max_attempts: int = 5
    min_wait_seconds: float = 0.01
    max_wait_seconds: float = 1.0
    exponential_base: float = 1.0
    jitter_fraction: float = 0.1

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before the next attempt.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)

        Args:
            attempt: The attempt number (0 for first retry, 1 for second, etc.)

        Returns:
            Seconds to sleep before retrying
        """
        wait = min(
            self.max_wait_seconds,
            self.min_wait_seconds * (self.exponential_base**attempt),
        )
        jitter = random.uniform(0, wait * self.jitter_fraction)
        return wait + jitter

    def should_retry(self, retry_count: int) -> bool:
        """
        Check if another attempt should be made.

        Args:
            retry_count: Current number of attempts made

        Returns:
            True if retry_count < max_attempts, False otherwise
        """
        return retry_count < self.max_attempts


async def update_with_retry(
    get: Callable[[ObjectKey], Awaitable[T]],
    replace: Callable[[T], Awaitable[T]],
    key: ObjectKey,
    desired: T,
    compare: CompareFunc,
    mutate: MutateFunc,
    retry: RetryConfig | None = None,
    kind: str = "",
) -> OperationResult:
    """
    Conditionally update one object with conflict retry.

    Reads the current object; if compare(current, desired) reports no update
    is needed, returns NONE without writing. Otherwise re-reads immediately
    before each write, applies mutate and replaces, retrying on ConflictError
    up to retry.max_attempts times.

    Args:
        get: Fetches the current object for a key.
        replace: Conditionally writes an object read earlier.
        key: Object to update.
        desired: Desired object passed through to compare and mutate.
        compare: Returns True when current must be updated towards desired.
        mutate: Applies desired values onto current in place.
        retry: Retry policy (defaults to RetryConfig()).
        kind: Resource kind, for error context.

    Returns:
        OperationResult.UPDATED if a write happened, NONE otherwise.

    Raises:
        NotFoundError: If the object does not exist.
        ConflictRetriesExhaustedError: If every attempt conflicted.
        BackendError: On any other backend failure.
    """
    retry = retry or RetryConfig()

    current = await get(key)
    if not compare(current, desired):
        return OperationResult.NONE

    attempts = 0
    while True:
        mutate(current, desired)
        attempts += 1
        try:
            await replace(current)
            return OperationResult.UPDATED
        except ConflictError as e:
            if not retry.should_retry(attempts):
                raise ConflictRetriesExhaustedError(
                    kind, key.name, key.namespace, attempts
                ) from e
            logger.debug(
                "Conflict updating %s %s (attempt %d), retrying", kind, key, attempts
            )

        await asyncio.sleep(retry.calculate_delay(attempts - 1))
        current = await get(key)
