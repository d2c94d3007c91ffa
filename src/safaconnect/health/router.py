"""Health, readiness, and version endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from safaconnect.config import get_settings
from safaconnect.database import get_session
from safaconnect.redis_client import get_redis, redis_ping
from safaconnect.responses import ApiResponse

logger = structlog.get_logger()

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=ApiResponse[dict[str, str]])
async def health() -> ApiResponse[dict[str, str]]:
    """Liveness probe, 200 while the process is up."""
    return ApiResponse(data={"status": "healthy"})


@router.get("/ready", response_model=ApiResponse[dict[str, Any]])
async def readiness(
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),
) -> ApiResponse[dict[str, Any]]:
    """Readiness probe, checks database and Redis connectivity."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        logger.warning("readiness_check_failed", component="database", error=str(exc))
        checks["database"] = "error"

    try:
        checks["redis"] = "ok" if await redis_ping(redis) else "error"
    except Exception as exc:
        logger.warning("readiness_check_failed", component="redis", error=str(exc))
        checks["redis"] = "error"

    all_ok = all(v == "ok" for v in checks.values())
    return ApiResponse(data={"status": "ready" if all_ok else "degraded", "checks": checks})


@router.get("/version", response_model=ApiResponse[dict[str, str]])
async def version() -> ApiResponse[dict[str, str]]:
    settings = get_settings()
    return ApiResponse(data={"version": settings.app_version, "environment": settings.environment})
