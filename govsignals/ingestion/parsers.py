"""Parsers for the two upstream wire formats.

Syndication feeds (RSS 2.0 / Atom) go through feedparser. Bulk documents are
the Transport Department style XML data files: repeated ``<item>`` blocks
carrying every language in suffixed fields (``Title_EN``, ``Detail_TC`` ...)
plus a shared ``Link`` and ``PublicationDate``. Those are read by field-level
extraction so unknown surrounding markup is ignored.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime

import feedparser

from govsignals.errors import FeedParseError
from govsignals.ingestion.base import RawFeedItem
from govsignals.ingestion.normalizer import clean_text
from govsignals.utils.time import from_struct_time, parse_timestamp, utc_now

# Field suffix in bulk documents -> language tag used everywhere else.
BULK_LANGUAGE_SUFFIXES = {
    "EN": "en",
    "TC": "zh-TW",
    "SC": "zh-CN",
}

_ITEM_RE = re.compile(r"<item\b(?:[^>]*[^/>])?>(.*?)</item>", re.DOTALL)
# Opening <item> tags; group 1 is "/" for a self-closing empty item.
_ITEM_OPEN_RE = re.compile(r"<item\b[^>]*?(/?)>")
_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.DOTALL)


def parse_syndication_feed(content: bytes | str, url: str) -> list[RawFeedItem]:
    """Parse an RSS/Atom body into raw items."""
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        raise FeedParseError(url, f"malformed feed: {feed.get('bozo_exception')}")

    fetched_at = utc_now()
    items: list[RawFeedItem] = []
    for entry in feed.entries:
        link = entry.get("link", "") or ""
        body = entry.get("summary", "") or entry.get("description", "") or ""
        if not body and entry.get("content"):
            body = entry["content"][0].get("value", "") or ""

        items.append(RawFeedItem(
            guid=entry.get("id") or entry.get("guid") or link,
            title=entry.get("title", "") or "",
            link=link,
            published_at=_entry_timestamp(entry) or fetched_at,
            body=body,
        ))
    return items


def _entry_timestamp(entry) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if value:
            return from_struct_time(value)
    return parse_timestamp(entry.get("published") or entry.get("updated"))


def extract_field(block: str, name: str) -> str | None:
    """Text of the first ``<name>`` element in ``block``, CDATA unwrapped."""
    match = re.search(rf"<{name}\b[^>]*>(.*?)</{name}>", block, re.DOTALL)
    if not match:
        return None
    value = match.group(1).strip()
    cdata = _CDATA_RE.match(value)
    return cdata.group(1).strip() if cdata else value


def parse_bulk_document(text: str, feed_group: str, url: str) -> list[tuple[RawFeedItem, str]]:
    """Fan a bulk document out into one (item, language) pair per titled language."""
    if not text or not text.strip():
        raise FeedParseError(url, "empty document")

    blocks = _ITEM_RE.findall(text)
    openings = _ITEM_OPEN_RE.findall(text)
    if openings.count("") != text.count("</item>"):
        raise FeedParseError(url, "truncated <item> block")
    if not blocks and "/" not in openings:
        raise FeedParseError(url, "no <item> blocks found")

    fetched_at = utc_now()
    results: list[tuple[RawFeedItem, str]] = []
    for block in blocks:
        link = extract_field(block, "Link") or ""
        published_at = parse_timestamp(extract_field(block, "PublicationDate")) or fetched_at

        for suffix, language in BULK_LANGUAGE_SUFFIXES.items():
            title = extract_field(block, f"Title_{suffix}") or ""
            if not clean_text(title):
                continue
            detail = extract_field(block, f"Detail_{suffix}") or ""
            digest = hashlib.md5((title + link).encode("utf-8")).hexdigest()[:8]
            results.append((
                RawFeedItem(
                    guid=f"{feed_group}_{digest}",
                    title=title,
                    link=link,
                    published_at=published_at,
                    body=detail,
                ),
                language,
            ))
    return results
