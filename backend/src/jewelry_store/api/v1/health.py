"""Health check endpoints for liveness and readiness probes."""
from datetime import datetime

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from jewelry_store.cache import cache
from jewelry_store.database import engine

logger = structlog.get_logger(__name__)

router = APIRouter()

VERSION = "1.0.0"


@router.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    """
    Liveness probe.

    Returns basic health status if the process is alive. Does not check
    external dependencies.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": VERSION,
    }


@router.get("/health/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """
    Readiness probe.

    Checks:
    - Database connectivity (required)
    - Redis connectivity (reported only; caching and rate limiting fail open)

    Returns 200 only if the database is reachable.
    """
    checks = {
        "database": "unknown",
        "redis": "unknown",
    }
    ready = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as exc:
        logger.error("database_health_check_failed", error=str(exc))
        checks["database"] = "disconnected"
        ready = False

    if not cache.enabled:
        checks["redis"] = "disabled"
    elif await cache.ping():
        checks["redis"] = "connected"
    else:
        logger.warning("redis_health_check_failed")
        checks["redis"] = "disconnected"

    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
