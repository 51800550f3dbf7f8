"""Cron trigger for the aggregation pipeline."""

from __future__ import annotations

import hmac
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from govsignals.aggregation.aggregator import GovernmentSignalsAggregator
from govsignals.aggregation.factory import build_aggregator
from govsignals.config import settings
from govsignals.errors import SourceRegistryError
from govsignals.observability.metrics import metrics
from govsignals.utils.time import utc_now

logger = logging.getLogger("govsignals.cron")

router = APIRouter(prefix="/api/cron", tags=["cron"])


def require_cron_secret(request: Request) -> None:
    """Accept only ``Authorization: Bearer <CRON_SECRET>``."""
    configured_secret = (settings.cron_secret or "").strip()
    if not configured_secret:
        logger.error("Cron request rejected: CRON_SECRET is not configured")
        raise HTTPException(status_code=503, detail="Cron trigger is not configured")

    header = request.headers.get("authorization") or ""
    provided = header[len("Bearer "):].strip() if header.startswith("Bearer ") else ""
    if not provided or not hmac.compare_digest(configured_secret, provided):
        logger.warning("Unauthorized aggregator request", extra={"path": request.url.path})
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_aggregator() -> GovernmentSignalsAggregator:
    return build_aggregator()


async def _run(aggregator: GovernmentSignalsAggregator) -> JSONResponse:
    started = time.perf_counter()
    try:
        summary = await aggregator.process_all_feeds()
    except SourceRegistryError as exc:
        metrics.observe_failed_run()
        logger.exception("Government signals aggregation failed")
        return JSONResponse(
            {
                "success": False,
                "timestamp": utc_now().isoformat(),
                "error": str(exc),
                "message": "Failed to aggregate government signals",
            },
            status_code=500,
        )

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    metrics.observe_run(summary, duration_ms)
    if summary.errors:
        logger.warning(f"Aggregation finished with {len(summary.errors)} errors")

    return JSONResponse({
        "success": True,
        "timestamp": utc_now().isoformat(),
        "message": (
            f"Processed {summary.processed} feed items into {summary.grouped} signals, "
            f"stored {summary.stored}"
        ),
        "processing_time_ms": duration_ms,
        "result": summary.model_dump(),
    })


@router.get("/government-signals-aggregator", dependencies=[Depends(require_cron_secret)])
async def run_aggregator(aggregator: GovernmentSignalsAggregator = Depends(get_aggregator)):
    """Scheduled trigger."""
    return await _run(aggregator)


@router.post("/government-signals-aggregator", dependencies=[Depends(require_cron_secret)])
async def trigger_aggregator(aggregator: GovernmentSignalsAggregator = Depends(get_aggregator)):
    """Manual trigger."""
    logger.info("Manual government signals aggregation triggered")
    return await _run(aggregator)
