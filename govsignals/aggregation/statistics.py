"""Read-only monitoring statistics over persisted signals."""

from __future__ import annotations

from collections import Counter

from govsignals.models.signal import ContentCompleteness, SignalStatistics
from govsignals.storage.store import SignalStore


class StatisticsReporter:
    def __init__(self, store: SignalStore, anchor_language: str = "en") -> None:
        self.store = store
        self.anchor_language = anchor_language

    async def get_statistics(self) -> SignalStatistics:
        records = await self.store.list_records()

        by_status: Counter[str] = Counter()
        by_feed_group: Counter[str] = Counter()
        completeness = ContentCompleteness()

        for record in records:
            by_status[record.processing_status.value] += 1
            by_feed_group[record.feed_group] += 1

            languages = record.content.get("languages") or {}
            anchor = languages.get(self.anchor_language) or {}
            has_anchor = bool(anchor.get("title") and anchor.get("body"))
            if has_anchor and len(languages) > 1:
                completeness.complete += 1
            elif has_anchor:
                completeness.anchor_language_only += 1
            else:
                completeness.partial += 1

        return SignalStatistics(
            total_signals=len(records),
            by_status=dict(by_status),
            by_feed_group=dict(by_feed_group),
            content_completeness=completeness,
        )
