"""
Health check endpoints.
"""

from typing import Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.core.config import settings
from assistlink.core.database import get_db
from assistlink.core.redis import get_redis

router = APIRouter()


@router.get("/liveness", status_code=status.HTTP_200_OK)
async def liveness() -> Dict[str, str]:
    """Process is up."""
    return {"status": "alive"}


@router.get("/readiness")
async def readiness(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """
    Readiness check.

    The database is required. Redis only backs the AI reply cache, so a
    Redis failure degrades the service but does not take it out of rotation.
    """
    checks: Dict[str, Dict[str, str]] = {}
    overall_status = status.HTTP_200_OK

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = {"status": "pass"}
    except (SQLAlchemyError, OSError) as exc:
        checks["database"] = {"status": "fail", "reason": str(exc)}
        overall_status = status.HTTP_503_SERVICE_UNAVAILABLE

    try:
        await redis.ping()
        checks["redis"] = {"status": "pass"}
    except (RedisError, OSError) as exc:
        checks["redis"] = {"status": "degraded", "reason": str(exc)}

    checks["ai_responder"] = {
        "status": "enabled"
        if settings.AI_RESPONDER_ENABLED and settings.GEMINI_API_KEY
        else "keyword_only"
    }

    body = {
        "status": "ready" if overall_status == status.HTTP_200_OK else "not_ready",
        "checks": checks,
    }
    return JSONResponse(status_code=overall_status, content=body)
