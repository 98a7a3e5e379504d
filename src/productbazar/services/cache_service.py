"""Redis-backed JSON cache.

Every call degrades to a miss/no-op when Redis is not initialized or errors,
so a cache outage never fails a request.
"""

import json
from typing import Any

import redis.asyncio as aioredis
import structlog

from productbazar.realtime.pubsub import get_redis

logger = structlog.get_logger()


# Key builders
def product_count_key(product_id: int) -> str:
    return f"view:product:{product_id}:count"


def product_stats_key(product_id: int, days: int) -> str:
    return f"view:product:{product_id}:stats:{days}"


def popular_key(period: str, limit: int) -> str:
    return f"view:popular:{period}:{limit}"


def related_key(product_id: int, limit: int) -> str:
    return f"view:related:{product_id}:{limit}"


def user_engagement_key(user_id: int, days: int) -> str:
    return f"view:user:{user_id}:engagement:{days}"


def view_engagement_key(product_id: int, viewer: str) -> str:
    return f"view:engagement:{product_id}:{viewer}"


def search_key(search_type: str, query: str, page: int, limit: int) -> str:
    return f"search:{search_type}:{query.lower()}:{page}:{limit}"


class CacheService:
    """Small JSON cache facade over Redis."""

    def __init__(self, client: aioredis.Redis | None = None):
        self._client = client

    @property
    def client(self) -> aioredis.Redis | None:
        if self._client is not None:
            return self._client
        try:
            return get_redis()
        except RuntimeError:
            return None

    async def get(self, key: str) -> Any | None:
        client = self.client
        if client is None:
            return None
        try:
            raw = await client.get(key)
        except aioredis.RedisError as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        client = self.client
        if client is None:
            return False
        try:
            payload = json.dumps(value, default=str)
            if ttl and ttl > 0:
                await client.set(key, payload, ex=ttl)
            else:
                await client.set(key, payload)
        except aioredis.RedisError as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False
        logger.debug("cache_set", key=key, ttl=ttl)
        return True

    async def delete(self, *keys: str) -> int:
        client = self.client
        if client is None or not keys:
            return 0
        try:
            return await client.delete(*keys)
        except aioredis.RedisError as e:
            logger.warning("cache_delete_failed", keys=keys, error=str(e))
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern using SCAN."""
        client = self.client
        if client is None:
            return 0
        deleted = 0
        try:
            batch: list[str] = []
            async for key in client.scan_iter(match=pattern, count=250):
                batch.append(key)
                if len(batch) >= 250:
                    deleted += await client.delete(*batch)
                    batch = []
            if batch:
                deleted += await client.delete(*batch)
        except aioredis.RedisError as e:
            logger.warning("cache_delete_pattern_failed", pattern=pattern, error=str(e))
        return deleted

    async def invalidate_view_caches(self, product_id: int, user_id: int | None = None) -> None:
        await self.delete(product_count_key(product_id))
        await self.delete_pattern(f"view:product:{product_id}:stats:*")
        await self.delete_pattern("view:popular:*")
        if user_id:
            await self.delete_pattern(f"view:user:{user_id}:*")
