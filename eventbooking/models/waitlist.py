"""
Waitlist entry for a full event.

Positions within one event always form 1..N without gaps. There is no unique
index on (event_id, position): renumbering is a single UPDATE that shifts rows
down by one, which a row-by-row unique check would trip over. Writers hold the
event lock instead.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index

from eventbooking.core.clock import utcnow
from eventbooking.db.base import Base


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_waitlist_event_user"),
        CheckConstraint("position >= 1", name="check_waitlist_position_positive"),
        Index("ix_waitlist_event_position", "event_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry(event={self.event_id}, user={self.user_id}, position={self.position})>"
