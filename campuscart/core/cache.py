"""
campuscart/core/cache.py

Read Cache Using Async Redis

Provides an optional asynchronous Redis client for caching read models:
- The client is only created when REDIS_URL is configured
- Key helpers share a single application prefix
- Pattern invalidation for per-user list keys
"""

import logging
from typing import Any

import redis.asyncio as redis

from campuscart.core.config import settings

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# Redis Client Initialization
# ---------------------------------------------------
redis_client: redis.Redis | None = None  # type: ignore[type-arg]

if settings.REDIS_URL:
    try:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info(f"[REDIS ASYNC] Initialized async Redis client for {settings.REDIS_URL}")
    except (redis.RedisError, ValueError) as e:
        logger.error(f"[REDIS ASYNC] Initialization failed: {e}")
        redis_client = None
else:
    logger.info("[REDIS ASYNC] REDIS_URL not set, caching disabled.")

CACHE_PREFIX = settings.CACHE_PREFIX
DEFAULT_CACHE_TTL = settings.DEFAULT_CACHE_TTL
SHORT_CACHE_TTL = settings.SHORT_CACHE_TTL


# --- Helper Functions for Cache Keys ---
def cache_key(namespace: str, identifier: Any) -> str:
    """Generate a simple cache key."""
    return f"{CACHE_PREFIX}{namespace}:{identifier}"


def user_cache_key(namespace: str, user_id: Any, identifier: Any = "all") -> str:
    """Generate a cache key scoped to one user."""
    return f"{CACHE_PREFIX}{namespace}:{user_id}:{identifier}"


async def invalidate_pattern(cache: Any, pattern: str) -> None:
    """Delete all Redis keys matching a given pattern."""
    if not cache:
        return
    deleted = 0
    try:
        async for key in cache.scan_iter(match=pattern):
            await cache.delete(key)
            deleted += 1
        logger.debug(f"[CACHE ASYNC] Deleted {deleted} keys matching pattern {pattern}")
    except redis.RedisError as e:
        logger.error(f"[CACHE ASYNC ERROR] Failed pattern deletion for {pattern}: {e}")
