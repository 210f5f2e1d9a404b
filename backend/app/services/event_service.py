"""
Event service handling the event directory: create, read, list, delete.

Events own the membership record lifecycle: creating an event creates an
empty record with the event's capacity, deleting it drops the record.
Attendance itself only changes through the admission controller.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from app.models.event import Event
from app.schemas.event import EventCreate, EventResponse
from app.services.interfaces.membership_store import MembershipRecord, MembershipStore
from app.core.logging import get_logger

logger = get_logger(__name__)


def to_response(event: Event, record: Optional[MembershipRecord]) -> EventResponse:
    """Merge the directory entry with its current attendance snapshot."""
    members = list(record.members) if record is not None else []
    return EventResponse(
        id=event.id,
        title=event.title,
        description=event.description,
        date=event.date,
        location=event.location,
        capacity=event.capacity,
        organizer_id=event.organizer_id,
        attendees=members,
        available_spots=max(0, event.capacity - len(members)),
        created_at=event.created_at,
    )


async def create_event(
    db: AsyncSession,
    store: MembershipStore,
    event_data: EventCreate,
    organizer_id: str,
) -> tuple[Event, MembershipRecord]:
    """Create a new event and its empty membership record."""
    if event_data.date <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event date must be in the future",
        )

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        location=event_data.location,
        capacity=event_data.capacity,
        organizer_id=organizer_id,
    )
    db.add(event)
    # The SQL store writes from its own session; the event row must be visible to it
    await db.commit()
    await db.refresh(event)

    try:
        record = await store.create(event.id, event.capacity)
    except Exception:
        logger.error("membership_record_create_failed", event_id=event.id)
        await db.delete(event)
        await db.commit()
        raise

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event, record


async def get_event(db: AsyncSession, event_id: str) -> Event:
    """Get a single event by ID."""
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[Event], int]:
    """
    List events with pagination, soonest first.
    Uses the ix_events_date index for efficient date filtering.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= datetime.now(timezone.utc))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.date.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def delete_event(
    db: AsyncSession,
    store: MembershipStore,
    event_id: str,
    user_id: str,
) -> None:
    """
    Delete an event (organizer only) and drop its membership record.

    The record goes first. A join racing with this sees it vanish and is
    rejected as EVENT_NOT_FOUND. If the drop fails the event row is left
    in place, so no deleted event ever keeps a live record.
    """
    event = await get_event(db, event_id)

    if event.organizer_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the organizer can delete this event",
        )

    await store.drop(event_id)
    await db.delete(event)
    await db.commit()

    logger.info("event_deleted", event_id=event_id)
