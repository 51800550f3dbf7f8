"""Shared test fixtures for the aggregator tests."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from govsignals.config import AggregatorConfig
from govsignals.database import Base
from govsignals.errors import PersistenceError
from govsignals.models import feed_source, signal  # noqa: F401
from govsignals.models.feed_source import FeedSourceDescriptor
from govsignals.models.signal import SignalRecord
from govsignals.storage.store import SignalStore

TD_EN_URL = "https://www.td.gov.hk/filemanager/rss/en/traffic_notices.xml"
TD_TC_URL = "https://www.td.gov.hk/filemanager/rss/tc/traffic_notices.xml"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """A fresh file-backed SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'signals.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def config() -> AggregatorConfig:
    return AggregatorConfig(feed_groups=("transport_notices",))


@pytest.fixture
def make_source() -> Callable[..., FeedSourceDescriptor]:
    def _make(**overrides) -> FeedSourceDescriptor:
        data = {
            "id": "src-transport",
            "feed_group": "transport_notices",
            "department": "transport",
            "feed_type": "notices",
            "urls": {"en": TD_EN_URL, "zh-TW": TD_TC_URL},
            "scraping_config": {"identity_pattern": r"/notice/(\d+)\.htm"},
        }
        data.update(overrides)
        return FeedSourceDescriptor.model_validate(data)

    return _make


def rss_feed(*items: dict) -> bytes:
    """Render a minimal RSS 2.0 document from item dicts."""
    rendered = []
    for item in items:
        parts = [f"<title>{item['title']}</title>", f"<link>{item['link']}</link>"]
        if "guid" in item:
            parts.append(f"<guid>{item['guid']}</guid>")
        if "pubDate" in item:
            parts.append(f"<pubDate>{item['pubDate']}</pubDate>")
        if "description" in item:
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        rendered.append("<item>" + "".join(parts) + "</item>")

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Feed</title><link>https://example.gov.hk</link>'
        "<description>Test feed</description>" + "".join(rendered) + "</channel></rss>"
    ).encode("utf-8")


def mock_transport(routes: dict[str, object]) -> httpx.MockTransport:
    """Serve bytes/str bodies by URL; an int is a status code, an exception is raised."""

    def handler(request: httpx.Request) -> httpx.Response:
        target = routes.get(str(request.url))
        if target is None:
            return httpx.Response(404)
        if isinstance(target, Exception):
            raise target
        if isinstance(target, int):
            return httpx.Response(target)
        return httpx.Response(200, content=target)

    return httpx.MockTransport(handler)


class InMemorySignalStore(SignalStore):
    """Dict-backed store that records every upsert."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.records: dict[str, SignalRecord] = {}
        self.failing = failing or set()
        self.upserts = 0

    async def get(self, source_identifier: str) -> SignalRecord | None:
        return self.records.get(source_identifier)

    async def upsert(self, record: SignalRecord) -> SignalRecord:
        if record.source_identifier in self.failing:
            raise PersistenceError("connection lost")
        self.upserts += 1
        self.records[record.source_identifier] = record
        return record

    async def list_records(self) -> list[SignalRecord]:
        return list(self.records.values())


@pytest.fixture
def rss() -> Callable[..., bytes]:
    return rss_feed


@pytest.fixture
def transport_for() -> Callable[[dict[str, object]], httpx.MockTransport]:
    return mock_transport


@pytest.fixture
def make_memory_store() -> Callable[..., InMemorySignalStore]:
    return InMemorySignalStore
