"""
Event model: the directory entry users RSVP to.

Key design decisions:
- String ids (UUID4) so event ids stay opaque to clients
- `capacity` is fixed at creation; attendance lives in the Membership row
- Index on `date` for range queries (e.g., "upcoming events")
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Index, CheckConstraint

from app.db.base import Base, TimestampMixin


def _new_event_id() -> str:
    return str(uuid.uuid4())


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_event_id)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    organizer_id = Column(String(64), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity})>"
