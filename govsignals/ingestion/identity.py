"""Notice identity resolution.

Government agencies publish each notice once per language, usually under
language-specific URLs that share some stable token (a numeric id, a file
name). The resolver derives that token so the language variants can be
grouped. Agencies use incompatible URL conventions, so resolution is an
ordered chain of independent strategies; the first one that returns a value
wins, and the last one (a digest of link and title) always succeeds.
"""

from __future__ import annotations

import hashlib
import logging
import re
from functools import lru_cache
from typing import Callable, Optional, Sequence

from govsignals.models.feed_source import FeedSourceDescriptor

logger = logging.getLogger("govsignals.identity")

IdentityStrategy = Callable[[str, FeedSourceDescriptor, Optional[str]], Optional[str]]

WEATHER_WARNING_GROUPS = frozenset({"hko_warnings", "hko_warnings_v3", "hko_warning_bulletin"})
MONETARY_PRESS_GROUPS = frozenset({"hkma_press"})
GENERIC_FILENAMES = frozenset({"index", "default", "main"})
FALLBACK_PREFIX = "item_"

_WEATHER_EXT_RE = re.compile(r"\.(htm|html|xml)$", re.IGNORECASE)
_GENERIC_EXT_RE = re.compile(r"\.(htm|html|xml|php)$", re.IGNORECASE)
_NON_WORD_RE = re.compile(r"[^a-zA-Z0-9_]")
_HKMA_PRESS_RE = re.compile(r"P(\d+)\.htm")
_HKMA_FALLBACK_RE = re.compile(r"(\w+)\.htm")


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    # Cached so an invalid pattern is reported once per process, not per item.
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.error(f"Invalid identity pattern {pattern!r}: {exc}")
        return None


def configured_pattern(link: str, source: FeedSourceDescriptor, title: str | None = None) -> str | None:
    """First capture group of the source's configured identity pattern."""
    pattern = source.scraping_config.identity_pattern
    if not pattern:
        return None
    compiled = _compile(pattern)
    if compiled is None:
        return None
    match = compiled.search(link)
    if match and match.groups() and match.group(1):
        return match.group(1)
    return None


def weather_warning_filename(link: str, source: FeedSourceDescriptor, title: str | None = None) -> str | None:
    """Warning bulletins are keyed by their file name."""
    if source.feed_group not in WEATHER_WARNING_GROUPS:
        return None
    filename = _WEATHER_EXT_RE.sub("", link.split("/")[-1])
    return filename or "warning"


def monetary_press_path(link: str, source: FeedSourceDescriptor, title: str | None = None) -> str | None:
    """HKMA press releases end in ``P<digits>.htm``, otherwise any word before ``.htm``."""
    if source.feed_group not in MONETARY_PRESS_GROUPS:
        return None
    match = _HKMA_PRESS_RE.search(link) or _HKMA_FALLBACK_RE.search(link)
    return match.group(1) if match else None


def generic_path(link: str, source: FeedSourceDescriptor, title: str | None = None) -> str | None:
    """Last meaningful path segment, widened with its parents when too generic."""
    parts = link.split("/")
    filename = _GENERIC_EXT_RE.sub("", parts.pop() if parts else "")

    if len(filename) < 3 or filename.lower() in GENERIC_FILENAMES:
        widened = "_".join(parts[-2:]) + "_" + filename
        filename = _NON_WORD_RE.sub("", widened)

    if len(filename) < 3:
        return None
    return filename


def content_digest(link: str, source: FeedSourceDescriptor, title: str | None = None) -> str:
    """Deterministic last resort over link and title."""
    digest = hashlib.md5((link + (title or "")).encode("utf-8")).hexdigest()[:8]
    return f"{FALLBACK_PREFIX}{digest}"


DEFAULT_STRATEGIES: tuple[IdentityStrategy, ...] = (
    configured_pattern,
    weather_warning_filename,
    monetary_press_path,
    generic_path,
    content_digest,
)


class NoticeIdentityResolver:
    """Runs identity strategies in order and returns the first result."""

    def __init__(self, strategies: Sequence[IdentityStrategy] = DEFAULT_STRATEGIES) -> None:
        self.strategies = tuple(strategies)

    def resolve(self, link: str, source: FeedSourceDescriptor, title: str | None = None) -> str | None:
        link = link or ""
        for strategy in self.strategies:
            identity = strategy(link, source, title)
            if identity:
                return identity
        return None
