"""Exception hierarchy for the aggregation pipeline."""

from __future__ import annotations


class AggregatorError(Exception):
    """Base class for all pipeline errors."""


class SourceRegistryError(AggregatorError):
    """The feed source registry could not be read. Fatal for a run."""


class FeedFetchError(AggregatorError):
    """A single upstream fetch failed (network, timeout or HTTP status)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class FeedParseError(FeedFetchError):
    """An upstream body could not be parsed. Handled like a fetch failure."""


class PersistenceError(AggregatorError):
    """A signal could not be written to the backing store."""
