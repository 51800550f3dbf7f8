"""Build storage documents for signals and upsert them with merge semantics."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from govsignals.aggregation.grouper import Signal
from govsignals.errors import PersistenceError
from govsignals.models.signal import ProcessingStatus, SignalRecord
from govsignals.storage.store import SignalStore
from govsignals.utils.time import isoformat_utc, parse_timestamp, utc_now

logger = logging.getLogger("govsignals.persistence")

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")


def count_words(text: str) -> int:
    """Approximate length: CJK ideographs count one each, other text by whitespace token."""
    if not text or not text.strip():
        return 0
    ideographs = len(_CJK_RE.findall(text))
    tokens = len(_CJK_RE.sub("", text).split())
    return ideographs + tokens


def content_hash(title: str, body: str) -> str:
    return hashlib.sha256((title + body).encode("utf-8")).hexdigest()


def processing_status_for(content: dict, anchor_language: str) -> ProcessingStatus:
    anchor = content.get("languages", {}).get(anchor_language) or {}
    if anchor.get("title", "").strip() and anchor.get("body", "").strip():
        return ProcessingStatus.CONTENT_COMPLETE
    return ProcessingStatus.CONTENT_PARTIAL


def build_content(signal: Signal, now: datetime | None = None) -> dict:
    """Storage document: a meta block plus one block per titled language."""
    now_iso = isoformat_utc(now or utc_now())
    languages: dict[str, dict] = {}
    for lang, variant in signal.languages.items():
        if not variant.title.strip():
            logger.warning(
                f"Empty title in {lang}, skipping language",
                extra={"source_identifier": signal.source_identifier},
            )
            continue
        languages[lang] = {
            "title": variant.title,
            "body": variant.body,
            "content_hash": content_hash(variant.title, variant.body),
            "word_count": count_words(f"{variant.title} {variant.body}"),
            "scraped_at": now_iso,
        }

    return {
        "meta": {
            "notice_id": signal.notice_id,
            "urls": dict(signal.urls),
            "published_at": isoformat_utc(signal.published_at),
            "discovered_at": now_iso,
        },
        "languages": languages,
    }


def merge_records(existing: SignalRecord, incoming: SignalRecord, anchor_language: str = "en") -> SignalRecord:
    """Fold a freshly built record into the stored one.

    Languages and URLs are merged key by key with the incoming side winning,
    except that an unchanged language block (same content hash) is kept as
    stored. The earliest published_at and the first discovered_at survive,
    and the processing status never moves backward.
    """
    old_meta = existing.content.get("meta", {})
    new_meta = incoming.content.get("meta", {})

    languages = dict(existing.content.get("languages", {}))
    for lang, block in incoming.content.get("languages", {}).items():
        previous = languages.get(lang)
        if previous and previous.get("content_hash") == block["content_hash"]:
            continue
        languages[lang] = block

    published = [
        ts for ts in (
            parse_timestamp(old_meta.get("published_at")),
            parse_timestamp(new_meta.get("published_at")),
        )
        if ts is not None
    ]
    meta = {
        **old_meta,
        **new_meta,
        "urls": {**old_meta.get("urls", {}), **new_meta.get("urls", {})},
        "discovered_at": old_meta.get("discovered_at") or new_meta.get("discovered_at"),
    }
    if published:
        meta["published_at"] = isoformat_utc(min(published))

    content = {"meta": meta, "languages": languages}
    status = max(
        processing_status_for(content, anchor_language),
        existing.processing_status,
        key=lambda s: s.rank,
    )
    return incoming.model_copy(update={
        "content": content,
        "processing_status": status,
        "scraping_attempts": existing.scraping_attempts,
    })


@dataclass
class PersistResult:
    stored: int = 0
    errors: list[str] = field(default_factory=list)


class PersistenceGateway:
    """Writes grouped signals to the backing store, one upsert per signal."""

    def __init__(self, store: SignalStore, anchor_language: str = "en", base_priority: int = 50) -> None:
        self.store = store
        self.anchor_language = anchor_language
        self.base_priority = base_priority

    def build_record(self, signal: Signal, now: datetime | None = None) -> SignalRecord:
        content = build_content(signal, now)
        if self.anchor_language not in content["languages"]:
            raise PersistenceError(f"{signal.source_identifier} has no {self.anchor_language} content")

        return SignalRecord(
            source_identifier=signal.source_identifier,
            feed_group=signal.feed_group,
            content=content,
            category=signal.category,
            priority_score=self.base_priority + signal.priority_boost,
            processing_status=processing_status_for(content, self.anchor_language),
            scraping_attempts=0,
        )

    async def persist_signal(self, signal: Signal) -> SignalRecord:
        record = self.build_record(signal)
        existing = await self.store.get(record.source_identifier)
        if existing is not None:
            record = merge_records(existing, record, self.anchor_language)
        return await self.store.upsert(record)

    async def persist(self, signals: Iterable[Signal]) -> PersistResult:
        result = PersistResult()
        for signal in signals:
            try:
                stored = await self.persist_signal(signal)
            except (PersistenceError, SQLAlchemyError) as exc:
                message = f"{signal.source_identifier}: {exc}"
                logger.error(
                    f"Failed to store signal: {exc}",
                    extra={"source_identifier": signal.source_identifier},
                )
                result.errors.append(message)
                continue

            result.stored += 1
            logger.info(
                f"Stored signal ({', '.join(sorted(signal.languages))}) as {stored.processing_status.value}",
                extra={"source_identifier": stored.source_identifier},
            )
        return result
