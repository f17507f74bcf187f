"""
Bounded polling waits.

All rollout waits (initial revision, pod rollout, cluster join/leave) are
fixed-interval polls with a fixed deadline. They hold the awaiting reconcile
pass until the condition holds, the deadline passes, or shutdown is
requested.

Uses asyncio.Event.wait() with a timeout for the interval sleep, so setting
the stop event interrupts a wait immediately instead of after the interval.
"""

import asyncio
from collections.abc import Awaitable, Callable

from es_rollout_core.errors import RolloutTimeoutError, WaitCancelledError

Condition = Callable[[], Awaitable[bool]]


async def poll_until(
    condition: Condition,
    *,
    interval: float,
    timeout: float,
    description: str,
    stop: asyncio.Event | None = None,
) -> None:
    """
    Poll a condition until it returns True.

    The condition is evaluated immediately and then once per interval.
    Exceptions raised by the condition abort the wait and propagate.

    Args:
        condition: Coroutine function returning True once satisfied.
        interval: Seconds between evaluations.
        timeout: Deadline in seconds, measured from the first evaluation.
        description: What is being waited for, used in error messages.
        stop: Optional shutdown event; when set the wait is abandoned.

    Raises:
        RolloutTimeoutError: If the deadline passes first.
        WaitCancelledError: If the stop event is set first.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        if stop is not None and stop.is_set():
            raise WaitCancelledError(description)

        if await condition():
            return

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise RolloutTimeoutError(description, timeout)

        sleep_for = min(interval, remaining)
        if stop is None:
            await asyncio.sleep(sleep_for)
            continue

        try:
            await asyncio.wait_for(stop.wait(), timeout=sleep_for)
        except asyncio.TimeoutError:
            continue  # Normal interval elapsed
        raise WaitCancelledError(description)
