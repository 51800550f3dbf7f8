"""Aggregation run orchestration: registry -> fetch -> group -> persist."""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict

import httpx

from govsignals.aggregation.grouper import SignalGrouper
from govsignals.config import AggregatorConfig
from govsignals.errors import SourceRegistryError
from govsignals.ingestion.base import FetchReport
from govsignals.ingestion.fetcher import FeedFetcher
from govsignals.ingestion.identity import NoticeIdentityResolver
from govsignals.models.feed_source import FeedSourceDescriptor
from govsignals.models.signal import RunSummary
from govsignals.storage.persistence import PersistenceGateway
from govsignals.storage.registry import FeedSourceRegistry
from govsignals.storage.store import SignalStore

logger = logging.getLogger("govsignals.aggregator")


class GovernmentSignalsAggregator:
    """Runs one aggregation pass over the configured feed groups.

    Only a registry that cannot be read at all aborts the run; every other
    failure shrinks the run's output and shows up in ``RunSummary.errors``.
    """

    def __init__(
        self,
        config: AggregatorConfig,
        registry: FeedSourceRegistry,
        store: SignalStore,
        transport: httpx.AsyncBaseTransport | None = None,
        resolver: NoticeIdentityResolver | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.fetcher = FeedFetcher(config, transport=transport)
        self.grouper = SignalGrouper(resolver or NoticeIdentityResolver(), config.anchor_language)
        self.gateway = PersistenceGateway(store, config.anchor_language, config.base_priority)

    async def process_all_feeds(self) -> RunSummary:
        started = time.perf_counter()
        run_id = uuid.uuid4().hex[:8]
        logger.info(
            f"Starting aggregation for feed groups: {', '.join(self.config.feed_groups) or 'all'}",
            extra={"run_id": run_id},
        )

        sources = await self.registry.load_active(self.config.feed_groups)
        logger.info(f"Found {len(sources)} active feed sources")

        report = await self.fetcher.fetch_all(self.partition(sources))
        await self._report_outcomes(report)
        logger.info(f"Total raw items fetched: {len(report.items)}")

        signals = self.grouper.group(report.items)
        logger.info(f"Grouped into {len(signals)} unique signals")

        persisted = await self.gateway.persist(signals)
        logger.info(
            f"Stored {persisted.stored} signals",
            extra={"run_id": run_id, "duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )

        return RunSummary(
            processed=len(report.items),
            grouped=len(signals),
            stored=persisted.stored,
            errors=report.errors + persisted.errors,
        )

    @staticmethod
    def partition(sources: list[FeedSourceDescriptor]) -> dict[str, list[FeedSourceDescriptor]]:
        grouped: dict[str, list[FeedSourceDescriptor]] = defaultdict(list)
        for source in sources:
            grouped[source.feed_group].append(source)
        return dict(grouped)

    async def _report_outcomes(self, report: FetchReport) -> None:
        # One health update per source: a source with any failed URL counts as failed.
        failures: dict[str, str] = {}
        succeeded: set[str] = set()
        for outcome in report.outcomes:
            if outcome.ok:
                succeeded.add(outcome.source_id)
            else:
                failures.setdefault(outcome.source_id, outcome.error or "unknown error")

        for source_id in sorted(succeeded | set(failures)):
            try:
                if source_id in failures:
                    await self.registry.record_failure(source_id, failures[source_id])
                else:
                    await self.registry.record_success(source_id)
            except SourceRegistryError as exc:
                logger.warning(f"Could not update fetch health: {exc}", extra={"source_id": source_id})
