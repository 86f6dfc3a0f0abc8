"""
Shared Redis client and the JSON cache used for AI responder results.
"""

import json
from typing import Any, Optional

from redis.asyncio import Redis, from_url

from assistlink.core.config import settings
from assistlink.core.metrics import record_cache_operation

redis_client: Optional[Redis] = None


async def get_redis() -> Redis:
    """Process-wide client; also the rate limiter's backing store."""
    global redis_client
    if redis_client is None:
        redis_client = from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


class CacheService:
    """
    JSON values under expiring keys.

    Redis errors propagate; callers decide whether a cache outage matters.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(key)
        if raw is None:
            record_cache_operation("miss")
            return None
        record_cache_operation("hit")
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value`` for ``ttl`` seconds (``REDIS_CACHE_TTL`` by default)."""
        stored = await self.redis.setex(
            key, ttl or settings.REDIS_CACHE_TTL, json.dumps(value, default=str)
        )
        if stored:
            record_cache_operation("set")
        return bool(stored)
