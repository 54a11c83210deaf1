# tests/core/test_retry.py

from unittest.mock import AsyncMock

import httpx
import pytest
from kubernetes_asyncio.client.rest import ApiException

from nodecycler.core.exceptions import RetryExhaustedError, UnrecognizedCreatedByError
from nodecycler.core.retry import RetryExecutor


@pytest.fixture
def executor():
    return RetryExecutor(max_attempts=12, delay=0)


@pytest.mark.parametrize("failures", [0, 1, 5, 11])
async def test_succeeds_after_fewer_than_max_failures(executor, failures):
    """k < 12 failures followed by a success: the call succeeds after exactly k retries."""
    operation = AsyncMock(side_effect=[ApiException(status=500, reason="boom")] * failures + ["ok"])

    result = await executor.call("flaky", operation, "arg", key="value")

    assert result == "ok"
    assert operation.await_count == failures + 1
    operation.assert_awaited_with("arg", key="value")


@pytest.mark.parametrize("failures", [12, 13, 30])
async def test_gives_up_after_exactly_max_attempts(executor, failures):
    operation = AsyncMock(side_effect=[httpx.ConnectError("down")] * failures + ["ok"])

    with pytest.raises(RetryExhaustedError) as exc_info:
        await executor.call("broken", operation)

    assert operation.await_count == 12
    assert exc_info.value.attempts == 12
    assert exc_info.value.operation == "broken"
    assert isinstance(exc_info.value.last_error, httpx.ConnectError)


async def test_taxonomy_errors_are_not_retried(executor):
    operation = AsyncMock(side_effect=UnrecognizedCreatedByError("bad value"))

    with pytest.raises(UnrecognizedCreatedByError):
        await executor.call("discovery", operation)

    assert operation.await_count == 1


async def test_logs_attempt_count_after_each_failure(caplog):
    executor = RetryExecutor(max_attempts=4, delay=0)
    operation = AsyncMock(side_effect=[OSError("x"), OSError("y"), "ok"])

    with caplog.at_level("WARNING", logger="nodecycler.core.retry"):
        assert await executor.call("label node-1", operation) == "ok"

    messages = [r.getMessage() for r in caplog.records]
    assert len(messages) == 2
    assert messages[0].startswith("Attempt 1/4 of 'label node-1' failed")
    assert messages[1].startswith("Attempt 2/4 of 'label node-1' failed")


def test_defaults_come_from_config():
    from nodecycler.core.config import config

    executor = RetryExecutor()

    assert executor.max_attempts == config.RETRY_MAX_ATTEMPTS
    assert executor.delay == config.RETRY_DELAY_SECONDS
