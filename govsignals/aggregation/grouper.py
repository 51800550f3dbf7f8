"""Merge per-language feed items into multi-language signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from govsignals.aggregation.classifier import classify_feed_group
from govsignals.ingestion.base import FetchedItem
from govsignals.ingestion.identity import NoticeIdentityResolver
from govsignals.ingestion.normalizer import clean_text
from govsignals.utils.time import ensure_utc

logger = logging.getLogger("govsignals.grouper")


@dataclass
class LanguageVariant:
    title: str
    body: str
    link: str
    guid: str


@dataclass
class Signal:
    """One real-world notice with all of its language variants."""

    notice_id: str
    feed_group: str
    category: str
    published_at: datetime
    languages: dict[str, LanguageVariant] = field(default_factory=dict)
    urls: dict[str, str] = field(default_factory=dict)
    priority_boost: int = 0

    @property
    def source_identifier(self) -> str:
        return f"{self.feed_group}_{self.notice_id}"

    def has_title(self, language: str) -> bool:
        variant = self.languages.get(language)
        return bool(variant and variant.title.strip())


class SignalGrouper:
    """Groups fetched items by resolved notice identity.

    Items whose identity cannot be resolved are dropped rather than merged
    into a guessed group. Signals without an anchor-language title are
    discarded once all items have been seen.
    """

    def __init__(self, resolver: NoticeIdentityResolver, anchor_language: str = "en") -> None:
        self.resolver = resolver
        self.anchor_language = anchor_language

    def group(self, fetched: Iterable[FetchedItem]) -> list[Signal]:
        grouped: dict[str, Signal] = {}

        for entry in fetched:
            item, source = entry.item, entry.source
            title = clean_text(item.title)
            body = clean_text(item.body)

            notice_id = self.resolver.resolve(item.link, source, title)
            if not notice_id:
                logger.warning(
                    f"Could not resolve notice identity from {item.link!r}",
                    extra={"feed_group": source.feed_group, "language": entry.language},
                )
                continue

            published_at = ensure_utc(item.published_at)
            key = f"{source.feed_group}_{notice_id}"
            signal = grouped.get(key)
            if signal is None:
                signal = Signal(
                    notice_id=notice_id,
                    feed_group=source.feed_group,
                    category=classify_feed_group(source.feed_group),
                    published_at=published_at,
                    priority_boost=source.scraping_config.priority_boost,
                )
                grouped[key] = signal

            signal.languages[entry.language] = LanguageVariant(
                title=title,
                body=body,
                link=item.link,
                guid=item.guid,
            )
            signal.urls[entry.language] = item.link

            # Strictly earlier only: equal timestamps keep the first-seen value.
            if published_at < signal.published_at:
                signal.published_at = published_at

        signals = [s for s in grouped.values() if s.has_title(self.anchor_language)]
        dropped = len(grouped) - len(signals)
        if dropped:
            logger.info(f"Dropped {dropped} signals without {self.anchor_language} title")
        return signals
