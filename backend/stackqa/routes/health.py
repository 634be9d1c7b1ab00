"""
StackQA Backend — Health Check Route
=====================================

What:  GET /health for container and load balancer health checks.
How:   Runs SELECT 1 against the pool and reports the number of open live
       subscription streams in this worker.

Status levels:
    healthy:   database reachable (HTTP 200)
    unhealthy: database unreachable (HTTP 503, stop routing traffic here)
"""

import logging
import time

from fastapi import APIRouter, Response

from stackqa import __version__
from stackqa.database import ping_database
from stackqa.schemas.common import HealthResponse
from stackqa.services.live import live_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        await ping_database()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        live_subscribers=live_hub.subscriber_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
