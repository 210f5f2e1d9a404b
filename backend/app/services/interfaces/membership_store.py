"""
Membership store interface.
The only collaborator the admission controller talks to.

The contract that matters: for one event, every applied conditional_add
and remove is linearizable. Implementations must get that from the
backing engine's own atomic update (conditional UPDATE, Lua script, ...),
never from an application lock, because callers run in many processes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class MembershipRecord:
    """Snapshot of one event's membership. Members are in admission order."""

    event_id: str
    capacity: int
    members: tuple[str, ...] = ()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.members

    @property
    def is_full(self) -> bool:
        return len(self.members) >= self.capacity

    @property
    def available_spots(self) -> int:
        return max(0, self.capacity - len(self.members))


@dataclass(frozen=True)
class JoinPredicate:
    """
    Condition a join must satisfy at the instant of mutation.

    Declarative rather than a callable so each engine can compile it into
    its native conditional write (WHERE clause, Lua branch, ...).
    """

    require_not_member: bool = True
    require_free_slot: bool = True

    def holds(self, record: MembershipRecord, user_id: str) -> bool:
        if self.require_not_member and user_id in record:
            return False
        if self.require_free_slot and record.is_full:
            return False
        return True


ADMISSION_PREDICATE = JoinPredicate()


def validate_capacity(capacity: int) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
        raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
    return capacity


class MembershipStore(ABC):
    """
    Durable, atomically mutable membership records keyed by event id.

    Implementations:
    - SqlMembershipStore: PostgreSQL conditional UPDATE on one row
    - RedisMembershipStore: server-side Lua scripts
    - InMemoryMembershipStore: single process only (dev, tests)
    """

    @abstractmethod
    async def create(self, event_id: str, capacity: int) -> MembershipRecord:
        """
        Create an empty record when the event is created.

        Raises:
            RecordExistsError: record already present
            ValueError: capacity is not a positive integer
        """
        pass

    @abstractmethod
    async def conditional_add(
        self,
        event_id: str,
        user_id: str,
        predicate: JoinPredicate,
    ) -> Optional[MembershipRecord]:
        """
        Add user_id iff predicate holds against the current record,
        checked and applied as one atomic step.

        Returns:
            The record after the add, or None if rejected
            (predicate false or record missing).
        """
        pass

    @abstractmethod
    async def remove(self, event_id: str, user_id: str) -> Optional[MembershipRecord]:
        """
        Remove user_id if present. No-op when absent.

        Returns:
            The current record, or None if the record does not exist.
        """
        pass

    @abstractmethod
    async def read(self, event_id: str) -> Optional[MembershipRecord]:
        """Plain snapshot read. Diagnostics and display only."""
        pass

    @abstractmethod
    async def drop(self, event_id: str) -> bool:
        """
        Destroy the record (event deleted). Idempotent.

        Returns:
            True if a record was removed.
        """
        pass
