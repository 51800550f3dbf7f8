"""Signal read endpoints — listing and monitoring statistics."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from govsignals.aggregation.factory import build_statistics_reporter
from govsignals.aggregation.statistics import StatisticsReporter
from govsignals.database import get_session
from govsignals.errors import PersistenceError
from govsignals.models.signal import GovernmentSignal, SignalStatistics

router = APIRouter(prefix="/api/signals", tags=["signals"])


class SignalResponse(BaseModel):
    id: int
    source_identifier: str
    feed_group: str
    category: str
    priority_score: int
    processing_status: str
    content: dict
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SignalListResponse(BaseModel):
    signals: list[SignalResponse]
    total: int
    page: int
    page_size: int


def get_statistics_reporter() -> StatisticsReporter:
    return build_statistics_reporter()


@router.get("/statistics", response_model=SignalStatistics)
async def signal_statistics(reporter: StatisticsReporter = Depends(get_statistics_reporter)):
    """Totals by processing status, feed group and content completeness."""
    try:
        return await reporter.get_statistics()
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("", response_model=SignalListResponse)
async def list_signals(
    feed_group: str | None = Query(None),
    category: str | None = Query(None),
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    """List stored signals, highest priority first."""
    query = select(GovernmentSignal).order_by(desc(GovernmentSignal.priority_score), desc(GovernmentSignal.id))

    if feed_group:
        query = query.where(GovernmentSignal.feed_group == feed_group)
    if category:
        query = query.where(GovernmentSignal.category == category)
    if status:
        query = query.where(GovernmentSignal.processing_status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = query.offset((page - 1) * page_size).limit(page_size)
    rows = (await session.execute(query)).scalars().all()

    return SignalListResponse(
        signals=[SignalResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{source_identifier}", response_model=SignalResponse)
async def get_signal(source_identifier: str, session: AsyncSession = Depends(get_session)):
    result = await session.execute(
        select(GovernmentSignal).where(GovernmentSignal.source_identifier == source_identifier)
    )
    signal = result.scalar_one_or_none()
    if not signal:
        raise HTTPException(status_code=404, detail="Signal not found")
    return SignalResponse.model_validate(signal)
