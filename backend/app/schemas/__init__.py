from app.schemas.event import EventCreate, EventResponse, EventListResponse, EventDeleteResponse
from app.schemas.rsvp import RSVPRequest, RSVPResponse, RSVPError

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse", "EventDeleteResponse",
    "RSVPRequest", "RSVPResponse", "RSVPError",
]
