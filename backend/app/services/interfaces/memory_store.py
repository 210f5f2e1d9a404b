"""
In-process membership store.
Only valid inside a single process; use for development and tests.
"""

import threading
from typing import Optional

from app.core.errors import RecordExistsError
from app.services.interfaces.membership_store import (
    JoinPredicate,
    MembershipRecord,
    MembershipStore,
    validate_capacity,
)


class InMemoryMembershipStore(MembershipStore):
    """
    Dict of records guarded by a threading.Lock.

    The lock is only held inside synchronous sections (no await), so it
    works the same for coroutines on one loop and for threads running
    their own loops.
    """

    def __init__(self):
        self._records: dict[str, MembershipRecord] = {}
        self._lock = threading.Lock()

    async def create(self, event_id: str, capacity: int) -> MembershipRecord:
        validate_capacity(capacity)
        with self._lock:
            if event_id in self._records:
                raise RecordExistsError(event_id)
            record = MembershipRecord(event_id=event_id, capacity=capacity)
            self._records[event_id] = record
            return record

    async def conditional_add(
        self,
        event_id: str,
        user_id: str,
        predicate: JoinPredicate,
    ) -> Optional[MembershipRecord]:
        with self._lock:
            record = self._records.get(event_id)
            if record is None or not predicate.holds(record, user_id):
                return None
            if user_id in record:
                return record
            updated = MembershipRecord(
                event_id=event_id,
                capacity=record.capacity,
                members=record.members + (user_id,),
            )
            self._records[event_id] = updated
            return updated

    async def remove(self, event_id: str, user_id: str) -> Optional[MembershipRecord]:
        with self._lock:
            record = self._records.get(event_id)
            if record is None or user_id not in record:
                return record
            updated = MembershipRecord(
                event_id=event_id,
                capacity=record.capacity,
                members=tuple(m for m in record.members if m != user_id),
            )
            self._records[event_id] = updated
            return updated

    async def read(self, event_id: str) -> Optional[MembershipRecord]:
        with self._lock:
            return self._records.get(event_id)

    async def drop(self, event_id: str) -> bool:
        with self._lock:
            return self._records.pop(event_id, None) is not None
