"""
Redis clients for the listing cache and the Redis membership store.
Separated from business logic for clean architecture.

The two do not share a client. The cache may retry freely; the store
sends each membership script exactly once, because a script that ran
but whose reply was lost would otherwise run a second time.
"""

import os
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff

from app.core.config import get_settings

LUA_DIR = os.path.join(os.path.dirname(__file__), 'lua')

_POOL_OPTIONS = dict(
    encoding="utf-8",
    decode_responses=True,
    socket_connect_timeout=5,
    socket_timeout=5,
    health_check_interval=30,
)


def no_retry_client(url: str, **kwargs) -> redis.Redis:
    """Client whose commands are sent at most once per call."""
    return redis.from_url(url, retry=Retry(NoBackoff(), 0), **kwargs)


class RedisClient:
    """Singleton async Redis clients with connection pooling."""

    _instance: Optional[redis.Redis] = None
    _store_instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """Get or create the cache client."""
        if cls._instance is None:
            settings = get_settings()
            cls._instance = redis.from_url(
                settings.REDIS_URL,
                retry_on_timeout=True,
                **_POOL_OPTIONS,
            )
        return cls._instance

    @classmethod
    def get_store_client(cls) -> redis.Redis:
        """Get or create the membership store client."""
        if cls._store_instance is None:
            settings = get_settings()
            cls._store_instance = no_retry_client(settings.REDIS_URL, **_POOL_OPTIONS)
        return cls._store_instance

    @classmethod
    async def close(cls):
        """Close Redis connections."""
        if cls._instance:
            await cls._instance.aclose()
            cls._instance = None
        if cls._store_instance:
            await cls._store_instance.aclose()
            cls._store_instance = None


# Convenience functions
def get_redis() -> redis.Redis:
    """Get the cache Redis client."""
    return RedisClient.get_client()


def get_store_redis() -> redis.Redis:
    """Get the membership store Redis client."""
    return RedisClient.get_store_client()


def load_script(name: str) -> str:
    """Read a Lua script shipped in infrastructure/lua."""
    with open(os.path.join(LUA_DIR, f"{name}.lua"), 'r') as f:
        return f.read()
