"""
shared/middleware/rate_limit.py
Fixed-window request limiter for the authentication endpoints.
Counters live in Redis, keyed by client IP. Without Redis the limiter fails open.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, status

from config.redis_client import RedisCache, get_optional_redis
from config.settings import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Dependency: `Depends(RateLimiter("auth"))` on each guarded route."""

    def __init__(self, scope: str):
        self.scope = scope

    async def __call__(
        self,
        request: Request,
        redis: Optional[aioredis.Redis] = Depends(get_optional_redis),
    ) -> None:
        if redis is None:
            return

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate:{self.scope}:{client_ip}"
        limit = settings.AUTH_RATE_LIMIT_MAX_REQUESTS
        window = settings.AUTH_RATE_LIMIT_WINDOW_SECONDS
        cache = RedisCache(redis)

        try:
            allowed = await cache.check_rate_limit(key, limit, window)
            retry_after = None if allowed else await cache.window_ttl(key, window)
        except aioredis.RedisError as e:
            logger.error(f"Rate limit check failed, allowing request: {e}")
            return

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {self.scope}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please try again later.",
                headers={"Retry-After": str(retry_after)},
            )


auth_rate_limit = RateLimiter("auth")
