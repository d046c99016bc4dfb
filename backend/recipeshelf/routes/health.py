"""
RecipeShelf Backend: Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer health checks.
How:   Checks the object store (the only dependency) and reports uptime.
Who:   Called by Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   Object store reachable (HTTP 200)
    - unhealthy: Object store unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from recipeshelf import __version__
from recipeshelf.schemas.media import HealthResponse
from recipeshelf.services.object_store import ObjectStore, get_object_store

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
    store: ObjectStore = Depends(get_object_store),
) -> HealthResponse:
    """Check that originals can be reached; thumbnails are useless otherwise."""
    store_status = "available"
    overall = "healthy"

    try:
        reachable = await store.health_check()
    except Exception as e:
        logger.warning("Health check: object store check raised: %s", str(e))
        reachable = False

    if not reachable:
        store_status = "unavailable"
        overall = "unhealthy"
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        object_store=store_status,
        backend=store.backend_name,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
