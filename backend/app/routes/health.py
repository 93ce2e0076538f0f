"""
SnipSync Backend — Health Check & Index Routes
================================================

What:  GET /api/health for monitoring and load balancer probes, and GET /
       as a small API index.
How:   Runs SELECT 1 through the request session and reports the number of
       connected real-time sessions.

Status levels:
    - healthy:   Database reachable (HTTP 200)
    - unhealthy: Database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app import __version__
from app.database import get_db_session
from app.schemas.snippet import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", summary="API index")
async def api_index() -> dict:
    return {
        "message": "SnipSync API",
        "version": __version__,
        "endpoints": {
            "snippets": "/api/snippets",
            "health": "/api/health",
            "realtime": "/ws",
        },
    }


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> HealthResponse:
    """
    Probe the database and report real-time session count.

    Why SELECT 1: health checks run every few seconds; anything heavier
    would waste connections.
    """
    db_status = "connected"
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    healthy = db_status == "connected"
    if not healthy:
        response.status_code = 503

    return HealthResponse(
        success=healthy,
        status="healthy" if healthy else "unhealthy",
        version=__version__,
        database=db_status,
        sessions=request.app.state.session_registry.count(),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
