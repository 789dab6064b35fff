"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from cafewatch import __version__
from cafewatch.api.dependencies import get_database, get_monitor_service
from cafewatch.api.models import ComponentHealth, HealthResponse
from cafewatch.monitor.service import MonitorService
from cafewatch.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the database, the cached login state and the monitor loop.",
)
async def health_check(
    db: Database = Depends(get_database),
    service: MonitorService = Depends(get_monitor_service),
) -> HealthResponse:
    """
    Status logic:
    - unhealthy: database is down
    - degraded: session is not logged in (cycles are skipped)
    - healthy: all components operational

    Reads the cached login state only; it never triggers a probe.
    """
    db_health = await _check_database(db)
    monitor = await service.health_check()
    authenticated = service.auth.is_authenticated

    if db_health.status == "unhealthy":
        status = "unhealthy"
    elif not authenticated:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        authenticated=authenticated,
        components={"database": db_health},
        monitor=monitor,
        version=__version__,
    )
