# src/nodecycler/core/retry.py
"""
Fixed-delay retry around every call made to the Kubernetes API and the
Compute Engine API.

There is no backoff and no jitter. A call is attempted up to
`max_attempts` times with `delay` seconds between attempts, then the whole
run fails with a RetryExhaustedError.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .config import config
from .exceptions import NodeCyclerError, RetryExhaustedError

logger = logging.getLogger(__name__)


class RetryExecutor:
    """
    Executes async operations with bounded-attempt, fixed-delay retry.

    NodeCyclerError and its subclasses are raised immediately, never retried.
    """

    def __init__(self, max_attempts: Optional[int] = None, delay: Optional[float] = None):
        self.max_attempts = max_attempts if max_attempts is not None else config.RETRY_MAX_ATTEMPTS
        self.delay = delay if delay is not None else config.RETRY_DELAY_SECONDS

    def _log_failure(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Attempt %d/%d of '%s' failed: %s. Retrying in %ss.",
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.kwargs.get("_operation_name", "operation"),
            exc,
            self.delay,
        )

    async def call(self, name: str, operation: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Awaits `operation(*args, **kwargs)` until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: After `max_attempts` failed attempts.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_not_exception_type(NodeCyclerError),
            before_sleep=self._log_failure,
        )
        try:
            return await retrying(self._invoke, operation, args, kwargs, _operation_name=name)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error("Giving up on '%s' after %d attempts: %s", name, self.max_attempts, last_error)
            raise RetryExhaustedError(name, self.max_attempts, last_error) from last_error

    @staticmethod
    async def _invoke(operation, args, kwargs, _operation_name: str):
        return await operation(*args, **kwargs)
