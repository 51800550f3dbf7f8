"""Wiring of the aggregator and reporter against the application database."""

from __future__ import annotations

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from govsignals.aggregation.aggregator import GovernmentSignalsAggregator
from govsignals.aggregation.statistics import StatisticsReporter
from govsignals.config import AggregatorConfig
from govsignals.database import async_session
from govsignals.storage.registry import SqlFeedSourceRegistry
from govsignals.storage.store import SqlSignalStore


def build_aggregator(
    session_factory: async_sessionmaker[AsyncSession] = async_session,
    config: AggregatorConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GovernmentSignalsAggregator:
    config = config or AggregatorConfig.from_settings()
    return GovernmentSignalsAggregator(
        config=config,
        registry=SqlFeedSourceRegistry(session_factory),
        store=SqlSignalStore(session_factory, config.anchor_language),
        transport=transport,
    )


def build_statistics_reporter(
    session_factory: async_sessionmaker[AsyncSession] = async_session,
    config: AggregatorConfig | None = None,
) -> StatisticsReporter:
    config = config or AggregatorConfig.from_settings()
    return StatisticsReporter(SqlSignalStore(session_factory, config.anchor_language), config.anchor_language)
