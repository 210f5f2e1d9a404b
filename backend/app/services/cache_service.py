"""
Redis caching service for event listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized, with attendees)
  - Cache key pattern: "events:list:page={page}&size={size}&upcoming={upcoming}"

Invalidation strategy:
  - On RSVP join/leave: attendee lists in the listing changed
  - On event creation or deletion
  - TTL-based expiry as safety net (5 minutes)

  All event list keys start with "events:list:" so we SCAN and delete them.

Why NOT cache individual events or membership records:
  - Admission must see the live record; a cached count is exactly the
    stale read that lets two users take the last spot
  - Single-event reads show current attendees and stay uncached

The cache is advisory. Any Redis failure degrades to "no cache".
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation
from app.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)
settings = get_settings()

_available: Optional[bool] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get the Redis connection for caching. Returns None if disabled or unreachable."""
    global _available

    if not settings.REDIS_ENABLED:
        return None

    client = RedisClient.get_client()
    if _available is None:
        try:
            await client.ping()
            _available = True
            logger.info("redis_connected", url=settings.REDIS_URL)
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            _available = False

    return client if _available else None


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _available
    await RedisClient.close()
    _available = None


def _make_event_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"events:list:page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached event list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            record_cache_operation("get", hit=True)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
        record_cache_operation("get", hit=False)
    except (RedisError, OSError) as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_events(
    page: int,
    page_size: int,
    upcoming_only: bool,
    data: dict,
) -> None:
    """Cache event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(page, page_size, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except (RedisError, OSError) as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match="events:list:*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except (RedisError, OSError) as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except (RedisError, OSError) as e:
        return {"status": "error", "error": str(e)}
