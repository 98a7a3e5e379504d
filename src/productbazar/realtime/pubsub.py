"""Redis connection and room broadcasting.

Pub/sub is fire-and-forget: if no socket is listening the message is lost,
which is fine for live counters since clients can always re-query the API.

Channel naming: productbazar:room:{room}, where room is ``product:<id>`` or
``user:<id>``.
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from productbazar.config import get_settings

logger = structlog.get_logger()

CHANNEL_PREFIX = "productbazar:room:"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        get_settings().redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def set_redis(client: Optional[aioredis.Redis]) -> None:
    """Install a Redis client (used by workers and tests)."""
    global _redis
    _redis = client


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def room_channel(room: str) -> str:
    return f"{CHANNEL_PREFIX}{room}"


async def publish_event(room: str, event: str, data: dict[str, Any]) -> bool:
    """Publish an event to a room. Returns False when Redis is unavailable."""
    try:
        r = get_redis()
    except RuntimeError:
        logger.debug("publish_skipped_no_redis", room=room, event_name=event)
        return False

    payload = json.dumps({"event": event, "room": room, "data": data}, default=str)
    try:
        await r.publish(room_channel(room), payload)
    except aioredis.RedisError as e:
        logger.warning("publish_failed", room=room, event_name=event, error=str(e))
        return False
    return True
