"""
config/redis_client.py
Async Redis client. Backs the fixed-window rate limiter on the
authentication endpoints.
"""

import logging
from typing import Optional
import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    """
    Initialize the Redis connection pool.
    A Redis outage leaves the client unset; rate limiting then fails open.
    """
    global redis_client
    client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    try:
        await client.ping()
    except aioredis.RedisError as e:
        logger.warning(f"Redis unavailable at startup, rate limiting disabled: {e}")
        await client.aclose()
        return
    redis_client = client


async def close_redis() -> None:
    """Close Redis connection pool."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_optional_redis() -> Optional[aioredis.Redis]:
    """FastAPI dependency for callers that degrade gracefully without Redis."""
    return redis_client


# ── Rate Limiting ─────────────────────────────────────────────
class RedisCache:
    """Helper class for common Redis patterns."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def check_rate_limit(self, key: str, limit: int, window_seconds: int = 60) -> bool:
        """
        Fixed window rate limiter.
        The window starts on the first hit and is not extended by later ones.
        Returns True if request is allowed, False if rate limited.
        """
        current_count = await self.client.incr(key)
        if current_count == 1:
            await self.client.expire(key, window_seconds)
        return current_count <= limit

    async def window_ttl(self, key: str, default: int) -> int:
        ttl = await self.client.ttl(key)
        return ttl if ttl and ttl > 0 else default
