# File: tests/test_executor.py
import asyncio

import pytest

from conftest import FakeStrategy, no_sleep
from site_intel.events import EventBus, EventKind, Phase
from site_intel.executor import BatchExecutor
from site_intel.policy import FailureMode, FailurePolicy
from site_intel.errors import TooManyFailures


def urls(n: int):
    return [f"https://example.com/p{i}" for i in range(n)]


class TrackingStrategy(FakeStrategy):
    """Records how many fetches were in flight at once."""

    def __init__(self, delay: float = 0.01, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.active = 0
        self.peak = 0

    async def fetch(self, url, context=None, site=None):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            return await super().fetch(url, context, site)
        finally:
            self.active -= 1


@pytest.mark.asyncio()
async def test_batches_of_fixed_size_with_delay():
    sleeps = []

    async def record_sleep(seconds):
        sleeps.append(seconds)

    executor = BatchExecutor(FakeStrategy(), batch_size=5, batch_delay=0.5, sleep=record_sleep)
    outcome = await executor.run(urls(12))

    assert outcome.batch_sizes == [5, 5, 2]
    assert sleeps == [0.5, 0.5]
    assert outcome.attempted == 12
    assert outcome.succeeded == 12


@pytest.mark.asyncio()
async def test_failures_keep_their_slot():
    targets = urls(10)
    strategy = FakeStrategy(failing={targets[3], targets[7]})
    outcome = await BatchExecutor(strategy, batch_delay=0).run(targets)

    assert len(outcome.records) == 10
    assert outcome.records[3] is None and outcome.records[7] is None
    assert [r.url for r in outcome.pages()] == [u for i, u in enumerate(targets) if i not in (3, 7)]
    assert outcome.succeeded == 8
    assert outcome.failed == 2
    assert sorted(strategy.calls) == sorted(targets)


@pytest.mark.asyncio()
async def test_empty_content_counts_as_failure():
    targets = urls(3)
    policy = FailurePolicy("rapid-scrape")
    outcome = await BatchExecutor(FakeStrategy(empty={targets[1]}), batch_delay=0, policy=policy).run(targets)

    assert outcome.records[1] is None
    assert policy.failures == [(targets[1], "empty content")]


@pytest.mark.asyncio()
async def test_skip_mode_drops_failed_slots():
    targets = urls(4)
    policy = FailurePolicy("rapid-scrape", mode=FailureMode.SKIP)
    strategy = FakeStrategy(failing={targets[0]}, empty={targets[2]})
    outcome = await BatchExecutor(strategy, batch_delay=0, policy=policy).run(targets)

    assert [r.url for r in outcome.records] == [targets[1], targets[3]]
    assert outcome.succeeded == 2
    assert outcome.failed == 2


@pytest.mark.asyncio()
async def test_slow_fetch_times_out():
    policy = FailurePolicy("rapid-scrape")
    executor = BatchExecutor(TrackingStrategy(delay=1.0), timeout=0.05, batch_delay=0, policy=policy)
    outcome = await executor.run(urls(2))

    assert outcome.succeeded == 0
    assert all("timed out" in reason for _, reason in policy.failures)


@pytest.mark.asyncio()
async def test_failure_budget_stops_new_batches():
    targets = urls(10)
    strategy = FakeStrategy(failing={targets[0], targets[1]})
    policy = FailurePolicy("rapid-scrape", max_failures=1)
    outcome = await BatchExecutor(strategy, batch_size=5, batch_delay=0, policy=policy).run(targets)

    assert outcome.exhausted
    assert outcome.batch_sizes == [5]
    assert outcome.succeeded == 3
    assert len(strategy.calls) == 5


@pytest.mark.asyncio()
async def test_stateful_strategy_runs_one_at_a_time():
    strategy = TrackingStrategy(stateful=True)
    outcome = await BatchExecutor(strategy, batch_size=4, batch_delay=0).run(urls(8))

    assert strategy.peak == 1
    assert strategy.calls == urls(8)
    assert outcome.succeeded == 8


@pytest.mark.asyncio()
async def test_stateless_strategy_runs_batch_concurrently():
    strategy = TrackingStrategy()
    await BatchExecutor(strategy, batch_size=4, batch_delay=0).run(urls(8))
    assert strategy.peak == 4


@pytest.mark.asyncio()
async def test_stop_check_prevents_further_batches():
    strategy = FakeStrategy()
    executor = BatchExecutor(
        strategy, batch_size=5, batch_delay=0, should_stop=lambda: len(strategy.calls) >= 5
    )
    outcome = await executor.run(urls(12))

    assert outcome.stopped_early
    assert outcome.batch_sizes == [5]
    assert outcome.records[5:] == [None] * 7


@pytest.mark.asyncio()
async def test_progress_and_data_events(clock):
    bus = EventBus("run", clock=clock)
    received = []
    bus.subscribe(received.append)
    targets = urls(7)
    await BatchExecutor(FakeStrategy(failing={targets[0]}), batch_size=5, bus=bus, sleep=no_sleep).run(targets)

    kinds = [e.type for e in received]
    assert kinds.count(EventKind.DATA) == 6
    progress = [e for e in received if e.type is EventKind.PROGRESS]
    assert [e.payload["current"] for e in progress] == [5, 7]
    assert progress[-1].payload["failed"] == 1
    assert all(e.phase is Phase.RAPID_SCRAPE for e in received)


def test_policy_budget_and_modes():
    policy = FailurePolicy("enhancement", max_failures=1, mode=FailureMode.SKIP)
    policy.record("a", "boom")
    with pytest.raises(TooManyFailures):
        policy.record("b", RuntimeError("bang"))
    assert policy.failed_urls() == ["a", "b"]
    assert not policy.keeps_placeholders


def test_zero_batch_size_rejected():
    with pytest.raises(ValueError):
        BatchExecutor(FakeStrategy(), batch_size=0)
