"""Concurrent feed fetching with per-source failure isolation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Mapping, Sequence

import httpx

from govsignals.config import AggregatorConfig
from govsignals.errors import FeedFetchError
from govsignals.ingestion.base import FetchedItem, FetchOutcome, FetchReport
from govsignals.ingestion.parsers import parse_bulk_document, parse_syndication_feed
from govsignals.models.feed_source import FeedSourceDescriptor

logger = logging.getLogger("govsignals.fetcher")

_FetchResult = tuple[list[FetchedItem], FetchOutcome]


class FeedFetcher:
    """Fetches every configured URL of every feed group in one settle-all batch.

    A source that times out, answers with an error status or serves an
    unparseable body contributes a failed ``FetchOutcome`` and no items; it
    never cancels or delays its siblings. Nothing is retried within a run.
    """

    def __init__(
        self,
        config: AggregatorConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    async def fetch_all(self, groups: Mapping[str, Sequence[FeedSourceDescriptor]]) -> FetchReport:
        async with httpx.AsyncClient(
            headers={"User-Agent": self.config.user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            jobs: list[tuple[FetchOutcome, Awaitable[_FetchResult]]] = []
            for sources in groups.values():
                for source in sources:
                    jobs.extend(self._jobs_for_source(client, source))

            logger.info(f"Fetching {len(jobs)} upstream documents across {len(groups)} feed groups")
            results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)

        report = FetchReport()
        for (placeholder, _), result in zip(jobs, results):
            if isinstance(result, BaseException):
                # Anything the per-fetch handler did not anticipate still only fails its own source.
                logger.error(
                    f"Unexpected fetch failure: {result!r}",
                    extra={"feed_group": placeholder.feed_group, "source_id": placeholder.source_id},
                )
                placeholder.error = f"{type(result).__name__}: {result}"
                report.outcomes.append(placeholder)
                continue
            items, outcome = result
            report.items.extend(items)
            report.outcomes.append(outcome)
        return report

    def _jobs_for_source(
        self,
        client: httpx.AsyncClient,
        source: FeedSourceDescriptor,
    ) -> list[tuple[FetchOutcome, Awaitable[_FetchResult]]]:
        if source.is_bulk_document:
            url = source.bulk_document_url
            return [(self._pending(source, url, None), self.fetch_bulk_document(client, source))]

        return [
            (self._pending(source, url, language), self.fetch_syndication_feed(client, source, language, url))
            for language, url in source.urls.items()
        ]

    @staticmethod
    def _pending(source: FeedSourceDescriptor, url: str, language: str | None) -> FetchOutcome:
        return FetchOutcome(
            source_id=source.id,
            feed_group=source.feed_group,
            url=url,
            language=language,
            ok=False,
        )

    async def fetch_syndication_feed(
        self,
        client: httpx.AsyncClient,
        source: FeedSourceDescriptor,
        language: str,
        url: str,
    ) -> _FetchResult:
        """Fetch one language's RSS/Atom feed."""
        outcome = self._pending(source, url, language)
        started = time.perf_counter()
        try:
            response = await self._get(client, url, self.config.syndication_timeout)
            items = [
                FetchedItem(item=item, language=language, source=source)
                for item in parse_syndication_feed(response.content, url)
            ]
        except FeedFetchError as exc:
            return self._failed(outcome, exc.reason, started)

        outcome.ok = True
        outcome.item_count = len(items)
        logger.info(
            f"Fetched {len(items)} items",
            extra={
                "feed_group": source.feed_group,
                "language": language,
                "duration_ms": _elapsed_ms(started),
            },
        )
        return items, outcome

    async def fetch_bulk_document(
        self,
        client: httpx.AsyncClient,
        source: FeedSourceDescriptor,
    ) -> _FetchResult:
        """Fetch a multilingual bulk document once and fan it out per language."""
        url = source.bulk_document_url
        outcome = self._pending(source, url, None)
        started = time.perf_counter()
        try:
            response = await self._get(client, url, self.config.bulk_document_timeout)
            pairs = parse_bulk_document(response.text, source.feed_group, url)
        except FeedFetchError as exc:
            return self._failed(outcome, exc.reason, started)

        items = [FetchedItem(item=item, language=language, source=source) for item, language in pairs]
        outcome.ok = True
        outcome.item_count = len(items)
        logger.info(
            f"Parsed bulk document into {len(items)} language variants",
            extra={"feed_group": source.feed_group, "duration_ms": _elapsed_ms(started)},
        )
        return items, outcome

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
        try:
            response = await client.get(url, timeout=timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FeedFetchError(url, f"timed out after {timeout:g}s") from exc
        except httpx.HTTPStatusError as exc:
            raise FeedFetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FeedFetchError(url, f"{type(exc).__name__}: {exc}") from exc
        return response

    @staticmethod
    def _failed(outcome: FetchOutcome, reason: str, started: float) -> _FetchResult:
        outcome.error = reason
        logger.warning(
            f"Fetch failed: {reason}",
            extra={
                "feed_group": outcome.feed_group,
                "source_id": outcome.source_id,
                "language": outcome.language,
                "duration_ms": _elapsed_ms(started),
            },
        )
        return [], outcome


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
