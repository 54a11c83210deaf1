# tests/core/test_poller.py

from unittest.mock import AsyncMock

import pytest

from nodecycler.core.exceptions import ConvergenceTimeoutError
from nodecycler.core.poller import wait_until
from nodecycler.models.run import PollPolicy


class FakeClock:
    """Monotonic clock advanced only by the poller's sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr("nodecycler.core.poller.time", fake)
    monkeypatch.setattr("nodecycler.core.poller.asyncio.sleep", fake.sleep)
    return fake


async def test_returns_first_satisfying_observation():
    observe = AsyncMock(side_effect=[0, 1, 3, 5])

    result = await wait_until(observe, lambda count: count >= 3, PollPolicy(interval=0), "nodes")

    assert result == 3
    assert observe.await_count == 3


async def test_without_deadline_keeps_polling():
    observe = AsyncMock(side_effect=[[]] * 50 + [["node-1"]])

    result = await wait_until(observe, lambda nodes: len(nodes) > 0, PollPolicy(interval=0), "nodes")

    assert result == ["node-1"]
    assert observe.await_count == 51


async def test_deadline_raises_convergence_timeout(clock):
    observe = AsyncMock(return_value=0)

    with pytest.raises(ConvergenceTimeoutError):
        await wait_until(observe, lambda count: count >= 3, PollPolicy(interval=1, deadline=0.5), "nodes", ">= 3")

    assert observe.await_count == 2
    assert clock.sleeps == [0.5]


async def test_deadline_allows_observations_until_it_has_passed(clock):
    observe = AsyncMock(return_value=0)

    with pytest.raises(ConvergenceTimeoutError):
        await wait_until(observe, lambda count: count >= 3, PollPolicy(interval=32, deadline=60), "nodes")

    assert observe.await_count == 3
    assert clock.sleeps == [32, 28]


async def test_condition_met_on_the_deadline_observation(clock):
    observe = AsyncMock(side_effect=[0, 1, 3])

    result = await wait_until(observe, lambda count: count >= 3, PollPolicy(interval=32, deadline=60), "nodes")

    assert result == 3
    assert clock.now == 60


async def test_sleeps_policy_interval_between_observations(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("nodecycler.core.poller.asyncio.sleep", fake_sleep)
    observe = AsyncMock(side_effect=[False, False, True])

    await wait_until(observe, bool, PollPolicy(interval=32), "stable")

    assert sleeps == [32, 32]
