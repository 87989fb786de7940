"""
Redis client and fixed-window counters.

The shared async client backs request rate limiting (login attempts,
transfers per user). Celery talks to Redis through its own broker URL.
"""

import redis.asyncio as aioredis

from app.config import settings

RATE_LIMIT_PREFIX = "rate_limit"

redis = aioredis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    ssl=settings.REDIS_SSL,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency that provides the Redis client."""
    return redis


async def hit_window(client, key: str, window_seconds: int) -> int:
    """
    Count one hit against ``rate_limit:<key>`` and return the running total.

    The expiry is set only on the first hit, so the window is fixed from
    that moment rather than sliding with each request.
    """
    redis_key = f"{RATE_LIMIT_PREFIX}:{key}"
    count = await client.incr(redis_key)
    if count == 1:
        await client.expire(redis_key, window_seconds)
    return count
