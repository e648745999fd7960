"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from packtrack.config import settings
from packtrack.database import engine
from packtrack.utils.cache import ReadCache, get_cache

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight liveness check (no DB/Redis round trip)."""
    return {
        "status": "ok",
        "service": "PackTrack",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(cache: ReadCache = Depends(get_cache)):
    """Readiness check: 200 only when the database answers.

    Redis is reported but optional; the API degrades to uncached reads.
    """
    checks = {
        "service": "ok",
        "database": "unknown",
        "redis": "disabled" if not cache.enabled else "unknown",
    }
    overall_healthy = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)[:100]}"
        overall_healthy = False

    if cache.enabled:
        try:
            await cache.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {str(e)[:100]}"

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if overall_healthy else "unhealthy",
            "service": "PackTrack",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
