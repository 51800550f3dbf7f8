"""Background scheduler — runs the aggregation pipeline on an interval."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from govsignals.aggregation.aggregator import GovernmentSignalsAggregator
from govsignals.aggregation.factory import build_aggregator
from govsignals.config import settings
from govsignals.errors import SourceRegistryError
from govsignals.models.signal import RunSummary
from govsignals.observability.metrics import metrics
from govsignals.utils.time import utc_now

logger = logging.getLogger("govsignals.scheduler")


class BackgroundScheduler:
    """Asyncio-based periodic runner inside the FastAPI event loop.

    Each tick builds a fresh aggregator and runs one full pass. A failed
    fetch is not retried inside the tick; the next tick is the retry.
    """

    def __init__(
        self,
        interval: int | None = None,
        aggregator_factory: Callable[[], GovernmentSignalsAggregator] = build_aggregator,
    ) -> None:
        self.interval = interval if interval is not None else settings.aggregation_interval_seconds
        self.aggregator_factory = aggregator_factory
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._tick_lock = asyncio.Lock()
        self.last_run_at: Optional[datetime] = None
        self.last_summary: Optional[RunSummary] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background scheduler."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Scheduler started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in tick: {e}")
                await asyncio.sleep(10)  # back off on error

    async def tick(self) -> Optional[RunSummary]:
        """Run a single aggregation pass; overlapping ticks are skipped."""
        if self._tick_lock.locked():
            logger.info("Previous aggregation still running, skipping tick")
            return None

        async with self._tick_lock:
            started = time.perf_counter()
            try:
                summary = await self.aggregator_factory().process_all_feeds()
            except SourceRegistryError as e:
                metrics.observe_failed_run()
                logger.error(f"Aggregation run aborted: {e}")
                return None

            metrics.observe_run(summary, (time.perf_counter() - started) * 1000)
            self.last_run_at = utc_now()
            self.last_summary = summary
            logger.info(
                f"Tick complete: processed={summary.processed} grouped={summary.grouped} "
                f"stored={summary.stored} errors={len(summary.errors)}"
            )
            return summary


scheduler = BackgroundScheduler()
