"""Health check endpoints."""

import redis.asyncio as aioredis
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from productbazar.api.deps import DbSession
from productbazar.realtime.pubsub import get_redis
from productbazar.schemas.common import ApiResponse

router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict])
async def health_check():
    """Basic health check."""
    return ApiResponse(message="healthy", data={"status": "healthy"})


@router.get("/health/db", response_model=ApiResponse[dict])
async def database_health(db: DbSession):
    """Database and Redis connectivity check."""
    checks = {"database": "connected", "redis": "connected"}
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        checks["database"] = f"disconnected: {e}"

    try:
        await get_redis().ping()
    except RuntimeError:
        checks["redis"] = "not configured"
    except aioredis.RedisError as e:
        checks["redis"] = f"disconnected: {e}"

    healthy = checks["database"] == "connected"
    return ApiResponse(
        status="success" if healthy else "error",
        message="healthy" if healthy else "unhealthy",
        data=checks,
    )
