"""Async SQLAlchemy engine, session factory and schema bootstrap."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from govsignals.config import settings

logger = logging.getLogger("govsignals.database")

_engine_kwargs: dict = {"echo": False}
if settings.database_url.startswith("postgresql"):
    _engine_kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True})

engine = create_async_engine(settings.database_url, **_engine_kwargs)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create the signal and feed source tables unless migrations own the schema."""
    if not settings.auto_create_schema:
        logger.info("AUTO_CREATE_SCHEMA=false, leaving schema to alembic")
        return

    from govsignals.models import feed_source, signal  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ensured government_signals and government_feed_sources tables")


async def get_session() -> AsyncSession:  # type: ignore[misc]
    """Dependency yielding an async DB session."""
    async with async_session() as session:
        yield session
