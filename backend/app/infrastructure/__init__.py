"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, get_store_redis, load_script, no_retry_client, RedisClient

__all__ = ['get_redis', 'get_store_redis', 'load_script', 'no_retry_client', 'RedisClient']
