"""
Photocat Backend — Health Check Route
=======================================

What:  GET /health for load balancers and container health checks.
How:   Pings the record store (SELECT 1) and the blob store.

Status levels:
    healthy:   both stores reachable                 (HTTP 200)
    degraded:  blob store down, records still usable (HTTP 200)
    unhealthy: record store down                     (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from photocat import __version__
from photocat.dependencies import get_blob_store, get_record_store
from photocat.schemas.photo import HealthResponse
from photocat.services.blob_store import BlobStore
from photocat.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    record_store: RecordStore = Depends(get_record_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> HealthResponse:
    database = "connected"
    blob_status = "available"
    overall = "healthy"

    if not await record_store.ping():
        database = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: record store unreachable")

    try:
        blob_ok = await blob_store.ping()
    except Exception as e:
        logger.warning("Health check: blob store ping failed: %s", str(e))
        blob_ok = False
    if not blob_ok:
        blob_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=database,
        blob_store=blob_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
