"""Tests for the background aggregation scheduler."""

import asyncio

import pytest

from govsignals.errors import SourceRegistryError
from govsignals.models.signal import RunSummary
from govsignals.workers.scheduler import BackgroundScheduler


class FakeAggregator:
    def __init__(self, summary=None, error=None, gate: asyncio.Event | None = None):
        self.summary = summary or RunSummary(processed=4, grouped=2, stored=2)
        self.error = error
        self.gate = gate
        self.calls = 0

    async def process_all_feeds(self) -> RunSummary:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.summary


class TestBackgroundScheduler:
    @pytest.mark.asyncio
    async def test_tick_records_last_run(self):
        aggregator = FakeAggregator()
        scheduler = BackgroundScheduler(interval=3600, aggregator_factory=lambda: aggregator)

        summary = await scheduler.tick()

        assert summary.stored == 2
        assert scheduler.last_summary == summary
        assert scheduler.last_run_at is not None

    @pytest.mark.asyncio
    async def test_aborted_run_is_not_fatal(self):
        aggregator = FakeAggregator(error=SourceRegistryError("registry unavailable"))
        scheduler = BackgroundScheduler(interval=3600, aggregator_factory=lambda: aggregator)

        assert await scheduler.tick() is None
        assert scheduler.last_summary is None

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        gate = asyncio.Event()
        aggregator = FakeAggregator(gate=gate)
        scheduler = BackgroundScheduler(interval=3600, aggregator_factory=lambda: aggregator)

        first = asyncio.create_task(scheduler.tick())
        await asyncio.sleep(0)
        skipped = await scheduler.tick()
        gate.set()
        completed = await first

        assert skipped is None
        assert completed is not None
        assert aggregator.calls == 1

    @pytest.mark.asyncio
    async def test_start_runs_immediately_and_stop_cancels(self):
        aggregator = FakeAggregator()
        scheduler = BackgroundScheduler(interval=3600, aggregator_factory=lambda: aggregator)

        await scheduler.start()
        await scheduler.start()
        for _ in range(10):
            if aggregator.calls:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert aggregator.calls == 1
        assert not scheduler.running
