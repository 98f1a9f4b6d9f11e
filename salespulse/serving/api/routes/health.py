"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from salespulse.config import get_settings
from salespulse.data.records import utc_now
from salespulse.database.connection import check_database_health
from salespulse.serving.cache import get_redis

settings = get_settings()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check the remote record store and, when it backs the snapshot cache, Redis.

    Redis is skipped with the in-memory snapshot cache.
    """
    checks = {}
    overall_status = "healthy"

    try:
        db_health = await check_database_health()
        checks["database"] = db_health
        if db_health.get("status") != "healthy":
            overall_status = "degraded"
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        overall_status = "unhealthy"

    if settings.sync.cache_backend == "redis":
        try:
            await get_redis().ping()
            checks["redis"] = {"status": "healthy"}
        except Exception as e:
            checks["redis"] = {"status": "unhealthy", "error": str(e)}
            if overall_status == "healthy":
                overall_status = "degraded"
    else:
        checks["snapshot_cache"] = {"status": "healthy", "backend": settings.sync.cache_backend}

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=utc_now(),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is running"""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 503 until the remote record store answers"""
    try:
        db_health = await check_database_health()

        if db_health.get("status") != "healthy":
            response.status_code = 503
            return {"status": "not_ready", "reason": "database_unavailable"}

        return {"status": "ready"}
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "reason": str(e)}
