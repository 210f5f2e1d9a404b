"""
Redis membership store.
Implements MembershipStore with server-side Lua scripts.

Layout per event (one hash tag, so a cluster keeps them on one slot):
  membership:{<event_id>}:capacity   string, positive integer
  membership:{<event_id>}:members    sorted set, score = admission sequence
  membership:{<event_id>}:seq        admission sequence counter

Redis runs each script to completion before serving any other command,
so the capacity/duplicate check and the ZADD happen as one step. The
sorted set gives set semantics and keeps admission order for display.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.errors import RecordExistsError, StoreUnavailableError
from app.core.logging import get_logger
from app.core.metrics import record_store_error
from app.infrastructure.redis_client import get_store_redis, load_script
from app.services.interfaces.membership_store import (
    JoinPredicate,
    MembershipRecord,
    MembershipStore,
    validate_capacity,
)

logger = get_logger(__name__)


def _keys(event_id: str) -> list[str]:
    tag = f"membership:{{{event_id}}}"
    return [f"{tag}:capacity", f"{tag}:members", f"{tag}:seq"]


def _to_record(event_id: str, reply) -> Optional[MembershipRecord]:
    if reply is None:
        return None
    capacity, members = reply
    return MembershipRecord(
        event_id=event_id,
        capacity=int(capacity),
        members=tuple(members),
    )


class RedisMembershipStore(MembershipStore):
    """
    Redis-backed membership records.

    Use when:
    - Events live in a deployment without PostgreSQL write capacity to spare
    - Flash RSVPs where the hot row would be a bottleneck

    An injected client must not retry commands on its own (see
    no_retry_client): a join that ran but lost its reply must not run twice.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis = client if client is not None else get_store_redis()
        self._create = self.redis.register_script(load_script("membership_create"))
        self._join = self.redis.register_script(load_script("membership_join"))
        self._leave = self.redis.register_script(load_script("membership_leave"))
        self._read = self.redis.register_script(load_script("membership_read"))

    async def _run(self, operation: str, script, keys: list[str], args: list):
        try:
            return await script(keys=keys, args=args)
        except (RedisError, OSError) as e:
            record_store_error(operation)
            logger.error("membership_store_error", backend="redis", operation=operation, error=str(e))
            raise StoreUnavailableError(operation, str(e)) from e

    async def create(self, event_id: str, capacity: int) -> MembershipRecord:
        validate_capacity(capacity)
        created = await self._run("create", self._create, _keys(event_id), [capacity])
        if not created:
            raise RecordExistsError(event_id)
        return MembershipRecord(event_id=event_id, capacity=capacity)

    async def conditional_add(
        self,
        event_id: str,
        user_id: str,
        predicate: JoinPredicate,
    ) -> Optional[MembershipRecord]:
        args = [
            user_id,
            "1" if predicate.require_not_member else "0",
            "1" if predicate.require_free_slot else "0",
        ]
        reply = await self._run("conditional_add", self._join, _keys(event_id), args)
        return _to_record(event_id, reply)

    async def remove(self, event_id: str, user_id: str) -> Optional[MembershipRecord]:
        reply = await self._run("remove", self._leave, _keys(event_id)[:2], [user_id])
        return _to_record(event_id, reply)

    async def read(self, event_id: str) -> Optional[MembershipRecord]:
        reply = await self._run("read", self._read, _keys(event_id)[:2], [])
        return _to_record(event_id, reply)

    async def drop(self, event_id: str) -> bool:
        try:
            deleted = await self.redis.delete(*_keys(event_id))
        except (RedisError, OSError) as e:
            record_store_error("drop")
            logger.error("membership_store_error", backend="redis", operation="drop", error=str(e))
            raise StoreUnavailableError("drop", str(e)) from e
        return deleted > 0
