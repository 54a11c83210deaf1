# src/nodecycler/core/poller.py

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from ..models.run import PollPolicy
from .exceptions import ConvergenceTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def wait_until(
    observe: Callable[[], Awaitable[T]],
    satisfied: Callable[[T], bool],
    policy: PollPolicy,
    description: str,
    expected: Optional[str] = None,
) -> T:
    """
    Observes until `satisfied(observation)` holds, sleeping `policy.interval`
    between observations, and returns the satisfying observation.

    Without a deadline this waits forever.

    Raises:
        ConvergenceTimeoutError: If the condition still fails on an observation
            made once `policy.deadline` seconds have elapsed.
    """
    started = time.monotonic()
    observations = 0
    while True:
        value = await observe()
        observations += 1
        if satisfied(value):
            logger.info("%s: converged after %d observation(s) (actual: %s).", description, observations, value)
            return value

        elapsed = time.monotonic() - started
        logger.info(
            "%s: waiting (expected: %s, actual: %s, elapsed: %.0fs).",
            description,
            expected if expected is not None else "condition",
            value,
            elapsed,
        )
        delay = policy.interval
        if policy.deadline is not None:
            remaining = policy.deadline - elapsed
            if remaining <= 0:
                raise ConvergenceTimeoutError(
                    f"{description}: not converged within {policy.deadline:.0f}s (last observed: {value})"
                )
            # The last observation lands on the deadline.
            delay = min(delay, remaining)
        await asyncio.sleep(delay)
