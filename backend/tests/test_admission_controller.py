"""
Tests for join/leave outcomes and rejection classification.
"""

import asyncio
import gc

import pytest

from app.core.errors import StoreUnavailableError
from app.services.admission_controller import (
    AdmissionController,
    Admitted,
    Failed,
    FailureReason,
    Left,
    classify_rejection,
)
from app.services.interfaces.membership_store import MembershipRecord, MembershipStore


class ScriptedStore(MembershipStore):
    """Store stub: conditional_add always rejects, read returns a canned snapshot."""

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.add_calls = 0
        self.read_calls = 0

    async def create(self, event_id, capacity):
        raise NotImplementedError

    async def conditional_add(self, event_id, user_id, predicate):
        self.add_calls += 1
        return None

    async def remove(self, event_id, user_id):
        return None

    async def read(self, event_id):
        self.read_calls += 1
        return self.snapshot

    async def drop(self, event_id):
        return False


class BrokenStore(ScriptedStore):
    async def conditional_add(self, event_id, user_id, predicate):
        raise StoreUnavailableError("conditional_add", "connection refused")

    async def remove(self, event_id, user_id):
        raise StoreUnavailableError("remove", "connection refused")


@pytest.mark.asyncio
async def test_join_admits_into_free_slot(controller, memory_store):
    await memory_store.create("meetup", 5)

    outcome = await controller.join("meetup", "alice")

    assert outcome == Admitted(members=("alice",))
    assert (await memory_store.read("meetup")).members == ("alice",)


@pytest.mark.asyncio
async def test_join_twice_reports_already_member(controller, memory_store):
    """Scenario B: capacity 5, alice already in, alice joins again."""
    await memory_store.create("meetup", 5)
    await controller.join("meetup", "alice")

    outcome = await controller.join("meetup", "alice")

    assert outcome == Failed(reason=FailureReason.ALREADY_MEMBER)
    assert outcome.message == "Already RSVPed"
    assert (await memory_store.read("meetup")).members == ("alice",)


@pytest.mark.asyncio
async def test_join_full_event_reports_capacity_exceeded(controller, memory_store):
    await memory_store.create("meetup", 2)
    await controller.join("meetup", "alice")
    await controller.join("meetup", "bob")

    outcome = await controller.join("meetup", "carol")

    assert outcome == Failed(reason=FailureReason.CAPACITY_EXCEEDED)
    assert (await memory_store.read("meetup")).members == ("alice", "bob")


@pytest.mark.asyncio
async def test_member_of_full_event_rejoining_is_already_member(controller, memory_store):
    """Duplicate wins over full when both apply."""
    await memory_store.create("meetup", 1)
    await controller.join("meetup", "alice")

    outcome = await controller.join("meetup", "alice")

    assert outcome.reason == FailureReason.ALREADY_MEMBER


@pytest.mark.asyncio
async def test_leave_frees_slot_for_next_join(controller, memory_store):
    """Scenario C: full event, bob leaves, dave gets his spot."""
    await memory_store.create("meetup", 3)
    for user in ("alice", "bob", "carol"):
        await controller.join("meetup", user)

    left = await controller.leave("meetup", "bob")
    assert left == Left(members=("alice", "carol"))

    outcome = await controller.join("meetup", "dave")
    assert isinstance(outcome, Admitted)
    assert set(outcome.members) == {"alice", "carol", "dave"}


@pytest.mark.asyncio
async def test_missing_event(controller):
    """Scenario D: join fails with EventNotFound, leave is a no-op."""
    outcome = await controller.join("ghost-event", "alice")
    assert outcome == Failed(reason=FailureReason.EVENT_NOT_FOUND)

    left = await controller.leave("ghost-event", "alice")
    assert left == Left(members=())


@pytest.mark.asyncio
async def test_leave_is_idempotent(controller, memory_store):
    await memory_store.create("meetup", 3)
    await controller.join("meetup", "alice")
    await controller.join("meetup", "bob")

    first = await controller.leave("meetup", "alice")
    second = await controller.leave("meetup", "alice")

    assert first == second == Left(members=("bob",))


@pytest.mark.asyncio
async def test_leave_by_non_member_changes_nothing(controller, memory_store):
    await memory_store.create("meetup", 3)
    await controller.join("meetup", "alice")

    left = await controller.leave("meetup", "mallory")

    assert left.members == ("alice",)


@pytest.mark.asyncio
async def test_join_after_event_deleted(controller, memory_store):
    await memory_store.create("meetup", 3)
    await controller.join("meetup", "alice")
    await memory_store.drop("meetup")

    outcome = await controller.join("meetup", "bob")

    assert outcome.reason == FailureReason.EVENT_NOT_FOUND
    assert await memory_store.read("meetup") is None


@pytest.mark.asyncio
async def test_failed_join_does_not_affect_other_events(controller, memory_store):
    await memory_store.create("full", 1)
    await memory_store.create("open", 1)
    await controller.join("full", "alice")

    assert (await controller.join("full", "bob")).reason == FailureReason.CAPACITY_EXCEEDED
    assert await controller.join("open", "bob") == Admitted(members=("bob",))


@pytest.mark.asyncio
async def test_stale_diagnostic_read_reports_generic_rejection():
    """The write was rejected but by the time we look there is room again."""
    store = ScriptedStore(MembershipRecord(event_id="meetup", capacity=3, members=("bob",)))
    controller = AdmissionController(store)

    outcome = await controller.join("meetup", "alice")

    assert outcome == Failed(reason=FailureReason.ADMISSION_REJECTED)
    assert outcome.message == "RSVP failed, please try again"


@pytest.mark.asyncio
async def test_rejected_join_is_one_attempt_and_one_read():
    store = ScriptedStore(MembershipRecord(event_id="meetup", capacity=3, members=()))
    controller = AdmissionController(store)

    await controller.join("meetup", "alice")

    assert store.add_calls == 1
    assert store.read_calls == 1


@pytest.mark.asyncio
async def test_store_outage_propagates_as_unavailable():
    controller = AdmissionController(BrokenStore(snapshot=None))

    with pytest.raises(StoreUnavailableError):
        await controller.join("meetup", "alice")
    with pytest.raises(StoreUnavailableError):
        await controller.leave("meetup", "alice")


@pytest.mark.asyncio
async def test_timed_out_join_still_completes_in_store(memory_store):
    """The caller gives up; the mutation already sent is not cancelled."""

    class SlowStore(type(memory_store)):
        async def conditional_add(self, event_id, user_id, predicate):
            await asyncio.sleep(0.2)
            return await super().conditional_add(event_id, user_id, predicate)

    store = SlowStore()
    await store.create("meetup", 1)
    controller = AdmissionController(store, timeout=0.05)

    with pytest.raises(StoreUnavailableError):
        await controller.join("meetup", "alice")

    await asyncio.sleep(0.3)
    assert (await store.read("meetup")).members == ("alice",)
    retry = await AdmissionController(store).join("meetup", "alice")
    assert retry.reason == FailureReason.ALREADY_MEMBER


@pytest.mark.asyncio
async def test_abandoned_call_failure_is_consumed(memory_store):
    """A store error after the caller timed out is logged, not left dangling."""

    class SlowFailingStore(type(memory_store)):
        async def conditional_add(self, event_id, user_id, predicate):
            await asyncio.sleep(0.1)
            raise StoreUnavailableError("conditional_add", "connection reset")

    loop = asyncio.get_running_loop()
    unhandled = []
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
    try:
        controller = AdmissionController(SlowFailingStore(), timeout=0.02)
        with pytest.raises(StoreUnavailableError):
            await controller.join("meetup", "alice")

        await asyncio.sleep(0.2)
        gc.collect()
        await asyncio.sleep(0)
    finally:
        loop.set_exception_handler(previous)

    assert not [c for c in unhandled if "never retrieved" in c.get("message", "")]


def test_zero_timeout_disables_timeout(memory_store):
    assert AdmissionController(memory_store, timeout=0).timeout is None


class TestClassifyRejection:
    def test_missing_record(self):
        assert classify_rejection(None, "alice") == FailureReason.EVENT_NOT_FOUND

    def test_member(self):
        record = MembershipRecord(event_id="e", capacity=5, members=("alice",))
        assert classify_rejection(record, "alice") == FailureReason.ALREADY_MEMBER

    def test_full(self):
        record = MembershipRecord(event_id="e", capacity=2, members=("bob", "carol"))
        assert classify_rejection(record, "alice") == FailureReason.CAPACITY_EXCEEDED

    def test_room_left(self):
        record = MembershipRecord(event_id="e", capacity=2, members=("bob",))
        assert classify_rejection(record, "alice") == FailureReason.ADMISSION_REJECTED
