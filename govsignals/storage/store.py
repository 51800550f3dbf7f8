"""Backing store for persisted signals."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from govsignals.errors import PersistenceError
from govsignals.models.signal import GovernmentSignal, SignalRecord
from govsignals.utils.time import parse_timestamp, utc_now

logger = logging.getLogger("govsignals.store")

CATEGORY_PRIORITY_BOOST = {
    "emergency": 40,
    "weather_warning": 30,
    "health_alert": 25,
    "transport_notice": 15,
    "transport_press": 10,
    "monetary_press": 5,
}

_URGENT_RE = re.compile(r"urgent|emergency|immediate|critical|severe|major disruption|suspended")
_IMPORTANT_RE = re.compile(r"important|significant|disruption|delay|affected|closed")
_NOTICE_RE = re.compile(r"temporary|special|arrangement|notice")

# Columns rewritten when a record with the same source_identifier already exists.
# scraping_attempts and created_at belong to the first insert.
_CONFLICT_UPDATE_COLUMNS = (
    "feed_group",
    "content",
    "category",
    "priority_score",
    "processing_status",
    "updated_at",
)


def calculate_signal_priority(
    category: str,
    content: dict,
    base_priority: int = 50,
    anchor_language: str = "en",
) -> int:
    """Derive the stored priority from the base hint, category, wording and age."""
    priority = base_priority + CATEGORY_PRIORITY_BOOST.get(category, 0)

    anchor = (content.get("languages") or {}).get(anchor_language) or {}
    text = f"{anchor.get('title', '')} {anchor.get('body', '')}".lower()
    if _URGENT_RE.search(text):
        priority += 20
    elif _IMPORTANT_RE.search(text):
        priority += 10
    elif _NOTICE_RE.search(text):
        priority += 5

    published_at = parse_timestamp((content.get("meta") or {}).get("published_at"))
    if published_at is not None:
        hours = (utc_now() - published_at).total_seconds() / 3600
        if hours < 1:
            priority += 15
        elif hours < 6:
            priority += 10
        elif hours < 24:
            priority += 5

    return max(0, min(100, priority))


class SignalStore(ABC):
    """Keyed storage for signal records."""

    @abstractmethod
    async def get(self, source_identifier: str) -> SignalRecord | None:
        ...

    @abstractmethod
    async def upsert(self, record: SignalRecord) -> SignalRecord:
        """Insert or update by source_identifier; returns the record as stored."""
        ...

    @abstractmethod
    async def list_records(self) -> list[SignalRecord]:
        ...


class SqlSignalStore(SignalStore):
    """SQLAlchemy-backed store using ``INSERT ... ON CONFLICT DO UPDATE``.

    Priority is computed here on every write so callers only provide a base
    hint, mirroring a database-side trigger.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], anchor_language: str = "en") -> None:
        self.session_factory = session_factory
        self.anchor_language = anchor_language

    async def get(self, source_identifier: str) -> SignalRecord | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(GovernmentSignal).where(GovernmentSignal.source_identifier == source_identifier)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"lookup of {source_identifier} failed: {exc}") from exc
        if row is None:
            return None
        return self._decode(row)

    async def upsert(self, record: SignalRecord) -> SignalRecord:
        stored = record.model_copy(update={
            "priority_score": calculate_signal_priority(
                record.category,
                record.content,
                record.priority_score,
                self.anchor_language,
            ),
        })
        now = utc_now()
        values = {
            "source_identifier": stored.source_identifier,
            "feed_group": stored.feed_group,
            "content": stored.content,
            "category": stored.category,
            "priority_score": stored.priority_score,
            "processing_status": stored.processing_status.value,
            "scraping_attempts": stored.scraping_attempts,
            "created_at": now,
            "updated_at": now,
        }

        try:
            async with self.session_factory() as session:
                stmt = self._insert_for(session)(GovernmentSignal).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[GovernmentSignal.source_identifier],
                    set_={column: stmt.excluded[column] for column in _CONFLICT_UPDATE_COLUMNS},
                )
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"upsert of {record.source_identifier} failed: {exc}") from exc
        return stored

    async def list_records(self) -> list[SignalRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(GovernmentSignal))
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"listing signals failed: {exc}") from exc
        return [self._decode(row) for row in rows]

    @staticmethod
    def _decode(row: GovernmentSignal) -> SignalRecord:
        # Rows may be written by other collaborators of the shared table.
        try:
            return SignalRecord.model_validate(row)
        except ValidationError as exc:
            raise PersistenceError(
                f"stored signal {row.source_identifier} is not decodable: {exc.error_count()} validation errors"
            ) from exc

    @staticmethod
    def _insert_for(session: AsyncSession):
        dialect = session.bind.dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise PersistenceError(f"upsert is not supported on dialect {dialect!r}")
