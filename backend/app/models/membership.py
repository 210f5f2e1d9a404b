"""
Membership model: one row per event holding capacity and the admitted users.

Key design decisions:
- Members live in a single VARCHAR[] column so that admission is ONE
  conditional UPDATE on ONE row; PostgreSQL serializes writers on the row
  lock and re-checks the WHERE clause against the latest version.
- CHECK constraint on cardinality is the final safety net for capacity
- ON DELETE CASCADE: deleting the event removes the record, and an
  in-flight join then simply matches zero rows
"""

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, text
from sqlalchemy.dialects.postgresql import ARRAY

from app.db.base import Base, TimestampMixin


class Membership(Base, TimestampMixin):
    __tablename__ = "memberships"

    event_id = Column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        primary_key=True,
    )
    capacity = Column(Integer, nullable=False)
    members = Column(
        ARRAY(String(64)),
        nullable=False,
        default=list,
        server_default=text("'{}'"),
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_membership_capacity_positive"),
        CheckConstraint(
            "cardinality(members) <= capacity",
            name="check_members_within_capacity",
        ),
    )

    def __repr__(self) -> str:
        return f"<Membership(event={self.event_id}, members={len(self.members or [])}/{self.capacity})>"
