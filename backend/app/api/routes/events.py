"""
Event endpoints: directory CRUD with cached listings, and RSVP.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.event import EventCreate, EventResponse, EventListResponse, EventDeleteResponse
from app.schemas.rsvp import RSVPRequest, RSVPResponse, RSVPError
from app.services.admission_controller import AdmissionController, Admitted, FailureReason
from app.services.event_service import create_event, get_event, list_events, delete_event, to_response
from app.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from app.services.interfaces.membership_store import MembershipStore
from app.services.store_factory import get_admission_controller, get_membership_store
from app.core.security import get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])

_FAILURE_STATUS = {
    FailureReason.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureReason.ALREADY_MEMBER: status.HTTP_409_CONFLICT,
    FailureReason.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    FailureReason.ADMISSION_REJECTED: status.HTTP_409_CONFLICT,
}


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    store: MembershipStore = Depends(get_membership_store),
):
    """Create a new event. The caller becomes the organizer."""
    event, record = await create_event(db, store, event_data, user_id)
    await invalidate_event_cache()
    return to_response(event, record)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    store: MembershipStore = Depends(get_membership_store),
):
    """
    List events with pagination.
    Results are cached in Redis for 5 minutes.
    Cache is invalidated when events are created/deleted or RSVPs change.
    """
    cached = await get_cached_events(page, page_size, upcoming_only)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, upcoming_only)
    items = [to_response(e, await store.read(e.id)) for e in events]

    response_data = {
        "events": [item.model_dump() for item in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_events(page, page_size, upcoming_only, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    store: MembershipStore = Depends(get_membership_store),
):
    """Get a single event with live attendees. Not cached."""
    event = await get_event(db, event_id)
    return to_response(event, await store.read(event_id))


@router.delete("/{event_id}", response_model=EventDeleteResponse)
async def delete_event_endpoint(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    store: MembershipStore = Depends(get_membership_store),
):
    """Delete an event. Organizer only."""
    await delete_event(db, store, event_id, user_id)
    await invalidate_event_cache()
    return EventDeleteResponse(message="Event removed", event_id=event_id)


@router.post(
    "/{event_id}/rsvp",
    response_model=RSVPResponse,
    responses={404: {"model": RSVPError}, 409: {"model": RSVPError}},
)
async def rsvp_endpoint(
    event_id: str,
    rsvp: RSVPRequest,
    user_id: str = Depends(get_current_user_id),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """
    Join or leave an event.

    Join is one atomic conditional write: it never overfills the event
    and never admits the same user twice. A rejected join is final for
    this request; clients retry by sending it again.
    Leave always succeeds, even if the caller was not attending.
    """
    if rsvp.action == "leave":
        left = await controller.leave(event_id, user_id)
        await invalidate_event_cache()
        return RSVPResponse(message="RSVP Cancelled", attendees=list(left.members))

    outcome = await controller.join(event_id, user_id)
    if isinstance(outcome, Admitted):
        await invalidate_event_cache()
        return RSVPResponse(message="RSVP Successful", attendees=list(outcome.members))

    return JSONResponse(
        status_code=_FAILURE_STATUS[outcome.reason],
        content=RSVPError(reason=outcome.reason.value, message=outcome.message).model_dump(),
    )
