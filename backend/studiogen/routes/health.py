"""
StudioGen Backend - Health Check Routes
=========================================

What:  Liveness and readiness probes for Docker and load balancers.

    GET /health        overall status + dependency details (always 200)
    GET /health/ready  200 when the database answers, 503 otherwise

Status levels:
    healthy    database and Gemini reachable
    degraded   database fine, Gemini unreachable or its circuit open
               (auth and projects still work, generation does not)
    unhealthy  database unreachable
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from studiogen import __version__
from studiogen.database import engine
from studiogen.schemas.common import HealthResponse
from studiogen.services.gemini_service import CircuitBreaker, gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_start_time = time.time()


async def _database_available() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", e)
        return False


@router.get(
    "",
    response_model=HealthResponse,
    summary="Service health check",
    description="Status of the backend and its dependencies (database, Gemini).",
)
async def health_check() -> HealthResponse:
    db_ok = await _database_available()

    if gemini_service.circuit_state == CircuitBreaker.OPEN:
        gemini_status = "circuit_open"
    elif await gemini_service.health_check():
        gemini_status = "available"
    else:
        gemini_status = "unavailable"

    if not db_ok:
        overall = "unhealthy"
    elif gemini_status != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database="connected" if db_ok else "disconnected",
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get(
    "/ready",
    summary="Readiness probe",
    responses={503: {"description": "Database unreachable"}},
)
async def readiness() -> JSONResponse:
    if await _database_available():
        return JSONResponse(status_code=200, content={"status": "ready"})
    return JSONResponse(status_code=503, content={"status": "not_ready"})
