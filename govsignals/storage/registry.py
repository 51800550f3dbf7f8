"""Feed source registry: descriptor loading and fetch-health bookkeeping."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Sequence

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from govsignals.errors import SourceRegistryError
from govsignals.models.feed_source import FeedSource, FeedSourceDescriptor
from govsignals.utils.time import utc_now

logger = logging.getLogger("govsignals.registry")

DEFAULT_FEED_SOURCES: tuple[dict, ...] = (
    {
        "feed_group": "td_notices",
        "department": "transport",
        "feed_type": "notices",
        "urls": {
            "en": "https://www.td.gov.hk/filemanager/rss/en/traffic_notices.xml",
            "zh-TW": "https://www.td.gov.hk/filemanager/rss/tc/traffic_notices.xml",
            "zh-CN": "https://www.td.gov.hk/filemanager/rss/sc/traffic_notices.xml",
        },
        "scraping_config": {
            "enabled": True,
            "frequency_minutes": 5,
            "priority_boost": 10,
            "url_patterns": {
                "notice_id_regex": r"index_id_(\d+)",
                "language_url_map": {"en": "/en/", "zh-TW": "/tc/", "zh-CN": "/sc/"},
            },
        },
    },
    {
        "feed_group": "td_press",
        "department": "transport",
        "feed_type": "press",
        "urls": {
            "en": "https://www.td.gov.hk/filemanager/rss/en/press_release.xml",
            "zh-TW": "https://www.td.gov.hk/filemanager/rss/tc/press_release.xml",
            "zh-CN": "https://www.td.gov.hk/filemanager/rss/sc/press_release.xml",
        },
        "scraping_config": {
            "enabled": True,
            "frequency_minutes": 15,
            "priority_boost": 5,
            "url_patterns": {
                "notice_id_regex": r"index_id_(\d+)",
                "language_url_map": {"en": "/en/", "zh-TW": "/tc/", "zh-CN": "/sc/"},
            },
        },
    },
    {
        "feed_group": "td_special_traffic",
        "department": "transport",
        "feed_type": "notices",
        "urls": {"multilingual": "https://resource.data.one.gov.hk/td/en/specialtrafficnews.xml"},
        "scraping_config": {"enabled": True, "frequency_minutes": 5, "priority_boost": 15, "xml_data_format": True},
    },
    {
        "feed_group": "hko_warnings",
        "department": "weather",
        "feed_type": "warnings",
        "urls": {
            "en": "https://rss.weather.gov.hk/rss/WeatherWarningSummaryv2.xml",
            "zh-TW": "https://rss.weather.gov.hk/rss/WeatherWarningSummaryv2_uc.xml",
        },
        "scraping_config": {"enabled": True, "frequency_minutes": 5, "priority_boost": 20},
    },
    {
        "feed_group": "hkma_press",
        "department": "monetary",
        "feed_type": "press",
        "urls": {
            "en": "https://www.hkma.gov.hk/eng/other-information/rss/rss_press-release.xml",
            "zh-TW": "https://www.hkma.gov.hk/chi/other-information/rss/rss_press-release.xml",
        },
        "scraping_config": {"enabled": True, "frequency_minutes": 30, "priority_boost": 0},
    },
)


class FeedSourceRegistry(ABC):
    """Read access to feed source descriptors plus fetch-health reporting."""

    @abstractmethod
    async def load_active(self, feed_groups: Sequence[str] = ()) -> list[FeedSourceDescriptor]:
        """Active, enabled, valid descriptors; all groups when ``feed_groups`` is empty."""
        ...

    @abstractmethod
    async def record_success(self, source_id: str) -> None:
        ...

    @abstractmethod
    async def record_failure(self, source_id: str, error: str) -> None:
        ...


class SqlFeedSourceRegistry(FeedSourceRegistry):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def load_active(self, feed_groups: Sequence[str] = ()) -> list[FeedSourceDescriptor]:
        query = select(FeedSource).where(FeedSource.active.is_(True)).order_by(FeedSource.feed_group)
        if feed_groups:
            query = query.where(FeedSource.feed_group.in_(list(feed_groups)))

        try:
            async with self.session_factory() as session:
                rows = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as exc:
            raise SourceRegistryError(f"could not load feed sources: {exc}") from exc

        descriptors: list[FeedSourceDescriptor] = []
        for row in rows:
            try:
                descriptor = FeedSourceDescriptor.model_validate(row)
            except ValidationError as exc:
                logger.error(
                    f"Rejected malformed feed source: {exc.error_count()} validation errors",
                    extra={"feed_group": row.feed_group, "source_id": row.id},
                )
                continue
            if not descriptor.scraping_config.enabled:
                logger.info("Skipping disabled feed source", extra={"feed_group": descriptor.feed_group})
                continue
            descriptors.append(descriptor)
        return descriptors

    async def record_success(self, source_id: str) -> None:
        await self._update(
            source_id,
            last_fetch_attempt=utc_now(),
            last_successful_fetch=utc_now(),
            fetch_error_count=0,
        )

    async def record_failure(self, source_id: str, error: str) -> None:
        logger.debug(f"Recording fetch failure: {error}", extra={"source_id": source_id})
        await self._update(
            source_id,
            last_fetch_attempt=utc_now(),
            fetch_error_count=FeedSource.fetch_error_count + 1,
        )

    async def _update(self, source_id: str, **values) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(update(FeedSource).where(FeedSource.id == source_id).values(**values))
                await session.commit()
        except SQLAlchemyError as exc:
            raise SourceRegistryError(f"could not update feed source {source_id}: {exc}") from exc

    async def register(self, feed_source: dict) -> str:
        """Insert or replace a feed source row keyed by feed_group. Returns its id."""
        try:
            async with self.session_factory() as session:
                existing = (
                    await session.execute(
                        select(FeedSource).where(FeedSource.feed_group == feed_source["feed_group"])
                    )
                ).scalar_one_or_none()
                row = existing or FeedSource(id=feed_source.get("id") or str(uuid.uuid4()))
                row.feed_group = feed_source["feed_group"]
                row.department = feed_source["department"]
                row.feed_type = feed_source["feed_type"]
                row.urls = feed_source["urls"]
                row.scraping_config = feed_source.get("scraping_config", {})
                row.active = feed_source.get("active", True)
                if existing is None:
                    row.fetch_error_count = 0
                    session.add(row)
                await session.commit()
                return row.id
        except SQLAlchemyError as exc:
            raise SourceRegistryError(f"could not register {feed_source.get('feed_group')}: {exc}") from exc

    async def seed_defaults(self) -> int:
        for feed_source in DEFAULT_FEED_SOURCES:
            await self.register(feed_source)
        return len(DEFAULT_FEED_SOURCES)
