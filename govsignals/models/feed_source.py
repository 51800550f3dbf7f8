"""Feed source registry model and the validated descriptor schema."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy import JSON, Boolean, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from govsignals.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

# Key under ``urls`` that holds the single document for bulk-format groups.
MULTILINGUAL_URL_KEY = "multilingual"


# ─── SQLAlchemy Model ────────────────────────────────────────────


class FeedSource(Base):
    __tablename__ = "government_feed_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    feed_group: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    department: Mapped[str] = mapped_column(String(100), index=True)
    feed_type: Mapped[str] = mapped_column(String(50))
    urls: Mapped[dict] = mapped_column(JSONType, default=dict)
    scraping_config: Mapped[dict] = mapped_column(JSONType, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Monitoring
    last_fetch_attempt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_successful_fetch: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    fetch_error_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ─── Pydantic Schemas ────────────────────────────────────────────


class ScrapingConfig(BaseModel):
    """Per-source fetch configuration.

    Accepts both the flat layout and the registry's nested one, where the
    identity regex and language map live under ``url_patterns`` and the bulk
    flag is called ``xml_data_format``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = True
    frequency_minutes: int = Field(default=15, ge=1)
    priority_boost: int = 0
    bulk_document_format: bool = False
    identity_pattern: str | None = None
    language_url_map: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_layout(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        patterns = data.pop("url_patterns", None) or {}
        if "identity_pattern" not in data and patterns.get("notice_id_regex"):
            data["identity_pattern"] = patterns["notice_id_regex"]
        if "language_url_map" not in data and patterns.get("language_url_map"):
            data["language_url_map"] = patterns["language_url_map"]
        if "bulk_document_format" not in data and "xml_data_format" in data:
            data["bulk_document_format"] = bool(data.pop("xml_data_format"))
        return data


class FeedSourceDescriptor(BaseModel):
    """Read-only description of one feed group's upstream URLs."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    feed_group: str = Field(min_length=1)
    department: str
    feed_type: str
    urls: dict[str, str]
    scraping_config: ScrapingConfig = Field(default_factory=ScrapingConfig)
    active: bool = True

    @field_validator("urls")
    @classmethod
    def _urls_not_empty(cls, value: dict[str, str]) -> dict[str, str]:
        cleaned = {lang: url.strip() for lang, url in value.items() if url and url.strip()}
        if not cleaned:
            raise ValueError("at least one feed URL is required")
        return cleaned

    @property
    def is_bulk_document(self) -> bool:
        return self.scraping_config.bulk_document_format

    @property
    def bulk_document_url(self) -> str:
        """The single document URL for bulk groups."""
        if MULTILINGUAL_URL_KEY in self.urls:
            return self.urls[MULTILINGUAL_URL_KEY]
        return next(iter(self.urls.values()))
