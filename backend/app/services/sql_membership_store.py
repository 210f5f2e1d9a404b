"""
PostgreSQL membership store.

CONCURRENCY STRATEGY: One Conditional UPDATE Per Call
=====================================================

Problem:
  Two users try to take the last spot simultaneously.
  Both read "2 of 3 taken", both append, both succeed.
  Result: 4 attendees for 3 spots.

Solution:
  Fold the check into the write. Join is a single statement:

    UPDATE memberships
       SET members = array_append(members, :user_id)
     WHERE event_id = :event_id
       AND NOT members @> ARRAY[:user_id]
       AND cardinality(members) < capacity
    RETURNING event_id, capacity, members

  Under READ COMMITTED, a second writer blocks on the row lock, then
  PostgreSQL re-evaluates the WHERE clause against the row version the
  first writer committed. So the predicate is always checked against the
  authoritative value at the instant of mutation. No version column, no
  SELECT FOR UPDATE, no retry loop.

  rowcount == 0 (no RETURNING row) means rejected: predicate false or
  the event was deleted. The caller decides what to tell the user.

  The CHECK constraint cardinality(members) <= capacity stays as the
  final safety net.
"""

from typing import Optional

from sqlalchemy import case, delete, func, insert, not_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import RecordExistsError, StoreUnavailableError
from app.core.logging import get_logger
from app.core.metrics import record_store_error
from app.models.membership import Membership
from app.services.interfaces.membership_store import (
    JoinPredicate,
    MembershipRecord,
    MembershipStore,
    validate_capacity,
)

logger = get_logger(__name__)

_RETURNING = (Membership.event_id, Membership.capacity, Membership.members)

UNIQUE_VIOLATION = "23505"


def _sqlstate(error: DBAPIError) -> Optional[str]:
    # psycopg2 exposes pgcode, the asyncpg adapter sqlstate
    orig = error.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _to_record(row) -> MembershipRecord:
    return MembershipRecord(
        event_id=row.event_id,
        capacity=row.capacity,
        members=tuple(row.members or ()),
    )


class SqlMembershipStore(MembershipStore):
    """
    Each call runs in its own short transaction so the conditional write
    commits independently of whatever request session is open.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _execute(self, operation: str, stmt) -> Optional[MembershipRecord]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    row = result.one_or_none()
        except IntegrityError:
            raise
        except (DBAPIError, PoolTimeoutError, OSError) as e:
            record_store_error(operation)
            logger.error("membership_store_error", backend="sql", operation=operation, error=str(e))
            raise StoreUnavailableError(operation, str(e)) from e
        return _to_record(row) if row is not None else None

    async def create(self, event_id: str, capacity: int) -> MembershipRecord:
        validate_capacity(capacity)
        stmt = (
            insert(Membership)
            .values(event_id=event_id, capacity=capacity, members=[])
            .returning(*_RETURNING)
        )
        try:
            return await self._execute("create", stmt)
        except IntegrityError as e:
            # Foreign key and check violations are not duplicates
            if _sqlstate(e) != UNIQUE_VIOLATION:
                raise
            raise RecordExistsError(event_id) from e

    async def conditional_add(
        self,
        event_id: str,
        user_id: str,
        predicate: JoinPredicate,
    ) -> Optional[MembershipRecord]:
        stmt = update(Membership).where(Membership.event_id == event_id)
        if predicate.require_not_member:
            stmt = stmt.where(not_(Membership.members.contains([user_id])))
        if predicate.require_free_slot:
            stmt = stmt.where(func.cardinality(Membership.members) < Membership.capacity)
        # Never append a duplicate, even when the predicate skips the member check
        stmt = stmt.values(
            members=case(
                (Membership.members.contains([user_id]), Membership.members),
                else_=func.array_append(Membership.members, user_id),
            )
        ).returning(*_RETURNING).execution_options(synchronize_session=False)
        return await self._execute("conditional_add", stmt)

    async def remove(self, event_id: str, user_id: str) -> Optional[MembershipRecord]:
        # array_remove drops every occurrence, so a no-op when absent
        stmt = (
            update(Membership)
            .where(Membership.event_id == event_id)
            .values(members=func.array_remove(Membership.members, user_id))
            .returning(*_RETURNING)
            .execution_options(synchronize_session=False)
        )
        return await self._execute("remove", stmt)

    async def read(self, event_id: str) -> Optional[MembershipRecord]:
        stmt = select(*_RETURNING).where(Membership.event_id == event_id)
        return await self._execute("read", stmt)

    async def drop(self, event_id: str) -> bool:
        stmt = (
            delete(Membership)
            .where(Membership.event_id == event_id)
            .returning(*_RETURNING)
            .execution_options(synchronize_session=False)
        )
        return await self._execute("drop", stmt) is not None
