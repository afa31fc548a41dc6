"""
Redis rate limiting for the public form endpoints
"""

import logging
import os
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .config import PUBLIC_FORM_RATE_LIMIT, PUBLIC_FORM_RATE_WINDOW, RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Uses REDIS_URL when set, otherwise the individual REDIS_* settings
    """
    global redis_client

    if redis_client is None:
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            logger.info("📡 Using Redis URL connection")
            redis_client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
        else:
            redis_client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )

    return redis_client


def check_rate_limit(key: str, limit: int, window_seconds: int, client: redis.Redis) -> tuple[bool, int, int]:
    """Fixed-window counter: INCR the key and start the window on the first hit

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    count, ttl = pipe.execute()

    if ttl is None or ttl < 0:
        client.expire(key, window_seconds)
        ttl = window_seconds

    return count <= limit, count, ttl


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(
    limit: int = PUBLIC_FORM_RATE_LIMIT,
    window_seconds: int = PUBLIC_FORM_RATE_WINDOW,
    key_prefix: str = "rate_limit",
):
    """
    Create a per-IP rate limiter dependency

    Example usage:
        @router.post("/contact", dependencies=[Depends(create_rate_limiter(key_prefix="contact"))])
    """

    async def rate_limiter(request: Request):
        if not RATE_LIMIT_ENABLED:
            return

        key = f"{key_prefix}:{client_ip(request)}"
        try:
            is_allowed, count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())
        except redis.RedisError as e:
            # Forms must keep working when Redis is down
            logger.warning(f"⚠️ Rate limiting unavailable, allowing request: {e}")
            return

        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {count}/{limit} requests used")
            raise HTTPException(
                status_code=429,
                detail=f"Too many submissions. Please try again in {ttl // 60 or 1} minute(s).",
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
