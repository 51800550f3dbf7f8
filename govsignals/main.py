"""Government signals aggregator — FastAPI application entry point."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text

from govsignals.api.cron import router as cron_router
from govsignals.api.signals import router as signals_router
from govsignals.config import settings
from govsignals.database import engine, init_db
from govsignals.logging_config import setup_logging
from govsignals.observability.metrics import metrics
from govsignals.workers.scheduler import scheduler

logger = logging.getLogger("govsignals")

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


def _startup_checks() -> None:
    """Log warnings for misconfigured or missing settings."""
    if not settings.cron_secret:
        logger.warning("⚠  CRON_SECRET is empty — the HTTP cron trigger is disabled")
    if settings.is_production and "sqlite" in settings.database_url:
        logger.warning("⚠  APP_ENV=production with SQLite; use PostgreSQL for reliability")
    if not settings.feed_groups_list:
        logger.info("○ AGGREGATOR_FEED_GROUPS is empty — every active feed group will be polled")
    else:
        logger.info(f"✓ Feed groups: {', '.join(settings.feed_groups_list)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    setup_logging(settings.log_level)
    _startup_checks()

    await init_db()
    logger.info("✦ Government signals aggregator started")
    logger.info(f"  Aggregation interval: {settings.aggregation_interval_seconds}s")

    if settings.enable_scheduler:
        await scheduler.start()
    else:
        logger.info("○ Scheduler disabled (ENABLE_SCHEDULER=false)")

    yield

    await scheduler.stop()
    logger.info("✦ Government signals aggregator shutting down")


app = FastAPI(
    title="Government Signals Aggregator",
    description="Multi-language Hong Kong government feed aggregation",
    version="0.3.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# Request tracing + access log middleware
@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response: Response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    metrics.observe_request(request.url.path, response.status_code, duration_ms)
    logger.info(
        "request completed",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


app.include_router(cron_router)
app.include_router(signals_router)


@app.get("/")
async def root():
    return JSONResponse(
        {
            "service": "govsignals-api",
            "status": "ok",
            "endpoints": {
                "health": "/api/health",
                "metrics": "/api/metrics",
                "statistics": "/api/signals/statistics",
            },
        }
    )


async def _db_ready() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("database readiness check failed")
        return False


@app.get("/api/health")
async def health_check():
    database_ready = await _db_ready()
    return {
        "status": "healthy" if database_ready else "degraded",
        "service": "govsignals",
        "database_ready": database_ready,
        "scheduler_active": scheduler.running,
        "last_run_at": scheduler.last_run_at.isoformat() if scheduler.last_run_at else None,
    }


@app.get("/api/metrics")
async def get_metrics():
    return {"service": "govsignals", "metrics": metrics.snapshot()}
