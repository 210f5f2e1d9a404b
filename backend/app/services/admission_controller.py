"""
Admission controller: Join and Leave on top of a MembershipStore.

ADMISSION STRATEGY: Attempt, Then Explain
=========================================

Join issues exactly ONE conditional_add with the predicate
"not already a member AND members < capacity". The store evaluates it
against the live record in the same atomic step as the write, so two
callers racing for the last spot can never both win.

If the store rejects, we do ONE plain read to work out why (missing
event, duplicate, full). That read only picks the error wording. By the
time it runs, a concurrent Leave/Join may have changed the record, in
which case we fall back to ADMISSION_REJECTED ("try again").

There is no internal retry loop. A rejected join is final for that call;
retrying is the caller's decision. This keeps latency bounded at one
round trip (two on rejection).

Leave is an unconditional remove and is idempotent: leaving twice, or
leaving an event that no longer exists, is not an error.
"""

import asyncio
import functools
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from app.core.errors import StoreUnavailableError
from app.core.logging import get_logger
from app.core.metrics import record_rsvp, rsvp_latency
from app.services.interfaces.membership_store import (
    ADMISSION_PREDICATE,
    MembershipRecord,
    MembershipStore,
)

logger = get_logger(__name__)


class FailureReason(str, Enum):
    EVENT_NOT_FOUND = "event_not_found"
    ALREADY_MEMBER = "already_member"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    ADMISSION_REJECTED = "admission_rejected"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    FailureReason.EVENT_NOT_FOUND: "Event not found",
    FailureReason.ALREADY_MEMBER: "Already RSVPed",
    FailureReason.CAPACITY_EXCEEDED: "Event is full",
    FailureReason.ADMISSION_REJECTED: "RSVP failed, please try again",
}


@dataclass(frozen=True)
class Admitted:
    members: tuple[str, ...]


@dataclass(frozen=True)
class Failed:
    reason: FailureReason

    @property
    def message(self) -> str:
        return self.reason.message


@dataclass(frozen=True)
class Left:
    members: tuple[str, ...]


JoinOutcome = Union[Admitted, Failed]


def classify_rejection(record: Optional[MembershipRecord], user_id: str) -> FailureReason:
    """Explain a rejected join from a (possibly stale) snapshot."""
    if record is None:
        return FailureReason.EVENT_NOT_FOUND
    if user_id in record:
        return FailureReason.ALREADY_MEMBER
    if record.is_full:
        return FailureReason.CAPACITY_EXCEEDED
    return FailureReason.ADMISSION_REJECTED


def _settle_abandoned(operation: str, task: asyncio.Future) -> None:
    """Done-callback for a store call whose caller stopped waiting."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("abandoned_store_call_failed", operation=operation, error=str(error))


class AdmissionController:
    """
    Stateless: holds no copy of any record between calls.

    `timeout` bounds how long a caller waits on the store. The store call
    is shielded, so a caller that gives up never cancels an atomic
    mutation already sent; it just stops waiting for the answer.
    """

    def __init__(self, store: MembershipStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout if timeout else None

    async def _call(self, operation: str, coro):
        if self.timeout is None:
            return await coro
        task = asyncio.ensure_future(coro)
        try:
            return await asyncio.wait_for(asyncio.shield(task), self.timeout)
        except asyncio.TimeoutError as e:
            task.add_done_callback(functools.partial(_settle_abandoned, operation))
            raise StoreUnavailableError(operation, f"timed out after {self.timeout}s") from e
        except asyncio.CancelledError:
            task.add_done_callback(functools.partial(_settle_abandoned, operation))
            raise

    async def join(self, event_id: str, user_id: str) -> JoinOutcome:
        start = time.perf_counter()
        try:
            record = await self._call(
                "conditional_add",
                self.store.conditional_add(event_id, user_id, ADMISSION_PREDICATE),
            )
            if record is not None:
                outcome: JoinOutcome = Admitted(members=record.members)
                logger.info(
                    "rsvp_admitted",
                    event_id=event_id,
                    user_id=user_id,
                    attendees=len(record.members),
                    capacity=record.capacity,
                )
                record_rsvp("join", "admitted")
                return outcome

            snapshot = await self._call("read", self.store.read(event_id))
            reason = classify_rejection(snapshot, user_id)
            logger.info("rsvp_rejected", event_id=event_id, user_id=user_id, reason=reason.value)
            record_rsvp("join", reason.value)
            return Failed(reason=reason)
        except StoreUnavailableError as e:
            logger.error("membership_store_unavailable", action="join", event_id=event_id, error=str(e))
            record_rsvp("join", "store_unavailable")
            raise
        finally:
            rsvp_latency.labels(action="join").observe(time.perf_counter() - start)

    async def leave(self, event_id: str, user_id: str) -> Left:
        start = time.perf_counter()
        try:
            record = await self._call("remove", self.store.remove(event_id, user_id))
        except StoreUnavailableError as e:
            logger.error("membership_store_unavailable", action="leave", event_id=event_id, error=str(e))
            record_rsvp("leave", "store_unavailable")
            raise
        finally:
            rsvp_latency.labels(action="leave").observe(time.perf_counter() - start)

        members = record.members if record is not None else ()
        logger.info("rsvp_left", event_id=event_id, user_id=user_id, attendees=len(members))
        record_rsvp("leave", "left")
        return Left(members=members)
