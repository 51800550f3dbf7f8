"""Tests for the feed source registry."""

import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from govsignals.errors import SourceRegistryError
from govsignals.models.feed_source import FeedSource
from govsignals.storage.registry import DEFAULT_FEED_SOURCES, SqlFeedSourceRegistry


def _source(feed_group: str, **overrides) -> dict:
    data = {
        "feed_group": feed_group,
        "department": "transport",
        "feed_type": "notices",
        "urls": {"en": f"https://example.gov.hk/{feed_group}/en.xml"},
        "scraping_config": {"enabled": True},
    }
    data.update(overrides)
    return data


async def _row(session_factory, source_id: str) -> FeedSource:
    async with session_factory() as session:
        return (await session.execute(select(FeedSource).where(FeedSource.id == source_id))).scalar_one()


class TestSqlFeedSourceRegistry:
    @pytest.mark.asyncio
    async def test_load_active_skips_inactive_disabled_and_malformed(self, session_factory):
        registry = SqlFeedSourceRegistry(session_factory)
        await registry.register(_source("td_notices"))
        await registry.register(_source("td_press", active=False))
        await registry.register(_source("hko_warnings", scraping_config={"enabled": False}))
        await registry.register(_source("hkma_press", urls={}))

        loaded = await registry.load_active()

        assert [d.feed_group for d in loaded] == ["td_notices"]

    @pytest.mark.asyncio
    async def test_load_active_filters_by_feed_group(self, session_factory):
        registry = SqlFeedSourceRegistry(session_factory)
        await registry.register(_source("td_notices"))
        await registry.register(_source("td_press"))
        await registry.register(_source("chp_press"))

        loaded = await registry.load_active(("td_press", "chp_press", "unknown_group"))

        assert [d.feed_group for d in loaded] == ["chp_press", "td_press"]

    @pytest.mark.asyncio
    async def test_register_replaces_by_feed_group(self, session_factory):
        registry = SqlFeedSourceRegistry(session_factory)
        first = await registry.register(_source("td_notices"))
        second = await registry.register(_source("td_notices", urls={"en": "https://example.gov.hk/new.xml"}))

        loaded = await registry.load_active()

        assert first == second
        assert loaded[0].urls == {"en": "https://example.gov.hk/new.xml"}

    @pytest.mark.asyncio
    async def test_fetch_health_bookkeeping(self, session_factory):
        registry = SqlFeedSourceRegistry(session_factory)
        source_id = await registry.register(_source("td_notices"))

        await registry.record_failure(source_id, "HTTP 503")
        await registry.record_failure(source_id, "timed out after 10s")
        failed = await _row(session_factory, source_id)
        assert failed.fetch_error_count == 2
        assert failed.last_fetch_attempt is not None
        assert failed.last_successful_fetch is None

        await registry.record_success(source_id)
        recovered = await _row(session_factory, source_id)
        assert recovered.fetch_error_count == 0
        assert recovered.last_successful_fetch is not None

    @pytest.mark.asyncio
    async def test_seed_defaults_loads_nested_config(self, session_factory):
        registry = SqlFeedSourceRegistry(session_factory)

        count = await registry.seed_defaults()
        loaded = {d.feed_group: d for d in await registry.load_active()}

        assert count == len(DEFAULT_FEED_SOURCES) == len(loaded)
        assert loaded["td_notices"].scraping_config.identity_pattern == r"index_id_(\d+)"
        assert loaded["td_notices"].scraping_config.language_url_map["zh-TW"] == "/tc/"
        assert loaded["td_special_traffic"].is_bulk_document
        assert loaded["td_special_traffic"].bulk_document_url.endswith("specialtrafficnews.xml")
        assert not loaded["hko_warnings"].is_bulk_document

    @pytest.mark.asyncio
    async def test_unreadable_registry_raises(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        registry = SqlFeedSourceRegistry(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
        try:
            with pytest.raises(SourceRegistryError):
                await registry.load_active()
        finally:
            await engine.dispose()


class TestFeedSourceDescriptor:
    def test_rejects_non_positive_frequency(self, make_source):
        with pytest.raises(ValidationError):
            make_source(scraping_config={"frequency_minutes": 0})

    def test_blank_urls_are_dropped(self, make_source):
        source = make_source(urls={"en": " https://example.gov.hk/en.xml ", "zh-CN": "  "})
        assert source.urls == {"en": "https://example.gov.hk/en.xml"}

    def test_bulk_url_falls_back_to_first_url(self, make_source):
        source = make_source(urls={"en": "https://example.gov.hk/all.xml"}, scraping_config={"bulk_document_format": True})
        assert source.is_bulk_document
        assert source.bulk_document_url == "https://example.gov.hk/all.xml"
