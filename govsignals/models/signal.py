"""Persisted government signal model and API schemas."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from govsignals.database import Base
from govsignals.models.feed_source import JSONType


class ProcessingStatus(str, enum.Enum):
    CONTENT_PARTIAL = "content_partial"
    CONTENT_COMPLETE = "content_complete"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ProcessingStatus.CONTENT_PARTIAL: 0,
    ProcessingStatus.CONTENT_COMPLETE: 1,
}


# ─── SQLAlchemy Model ────────────────────────────────────────────


class GovernmentSignal(Base):
    __tablename__ = "government_signals"
    __table_args__ = (
        CheckConstraint("priority_score BETWEEN 0 AND 100", name="valid_priority_score"),
        CheckConstraint("scraping_attempts >= 0", name="valid_scraping_attempts"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_identifier: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    feed_group: Mapped[str] = mapped_column(String(100), index=True)
    content: Mapped[dict] = mapped_column(JSONType, default=dict)
    category: Mapped[str] = mapped_column(String(50), index=True)
    priority_score: Mapped[int] = mapped_column(Integer, default=50, index=True)
    processing_status: Mapped[str] = mapped_column(
        String(30), default=ProcessingStatus.CONTENT_PARTIAL.value, index=True
    )
    scraping_attempts: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )


# ─── Pydantic Schemas ────────────────────────────────────────────


class SignalRecord(BaseModel):
    """Storage document for one signal, as handed to the backing store."""

    source_identifier: str
    feed_group: str
    content: dict
    category: str
    priority_score: int
    processing_status: ProcessingStatus
    scraping_attempts: int = 0

    model_config = {"from_attributes": True}


class RunSummary(BaseModel):
    processed: int = 0
    grouped: int = 0
    stored: int = 0
    errors: list[str] = Field(default_factory=list)


class ContentCompleteness(BaseModel):
    complete: int = 0
    partial: int = 0
    anchor_language_only: int = 0


class SignalStatistics(BaseModel):
    total_signals: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_feed_group: dict[str, int] = Field(default_factory=dict)
    content_completeness: ContentCompleteness = Field(default_factory=ContentCompleteness)
