"""Base types shared by the fetch and grouping stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from govsignals.models.feed_source import FeedSourceDescriptor


@dataclass
class RawFeedItem:
    """One feed entry in one language, before grouping."""

    guid: str
    title: str
    link: str
    published_at: datetime
    body: str = ""


@dataclass
class FetchedItem:
    item: RawFeedItem
    language: str
    source: FeedSourceDescriptor


@dataclass
class FetchOutcome:
    """Result of a single upstream request."""

    source_id: str
    feed_group: str
    url: str
    language: str | None
    ok: bool
    item_count: int = 0
    error: str | None = None


@dataclass
class FetchReport:
    items: list[FetchedItem] = field(default_factory=list)
    outcomes: list[FetchOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [
            f"{o.feed_group} ({o.language or 'multilingual'}): {o.error}"
            for o in self.outcomes
            if not o.ok
        ]
