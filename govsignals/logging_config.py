"""Structured logging configuration for the aggregator."""

from __future__ import annotations

import logging
import sys

from govsignals.utils.time import utc_now

# Extras attached via ``logger.x(..., extra={...})`` that are rendered as key=value.
CONTEXT_KEYS = (
    "run_id",
    "feed_group",
    "source_id",
    "language",
    "source_identifier",
    "method",
    "path",
    "status_code",
    "duration_ms",
)


class KeyValueFormatter(logging.Formatter):
    """Formats log records as a level/timestamp/message line with context pairs."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{record.levelname:<7}]",
            utc_now().isoformat(),
            f"{record.name}:",
            record.getMessage(),
        ]
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                parts.append(f"{key}={value}")

        if record.exc_info and record.exc_info[1]:
            parts.append(f"\n{self.formatException(record.exc_info)}")

        return " ".join(parts)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application."""
    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(KeyValueFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
