"""
Event model read by the booking workflow.

Key design decisions:
- No denormalized seat counter: capacity is checked against COUNT(confirmed bookings)
  while the event row is locked, so there is nothing to drift out of sync
- `version` is bumped by every capacity-sensitive transaction; that UPDATE is the
  per-event serialization point (see services/capacity.py)
- Index on `start_date` for range queries (upcoming events)
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index, CheckConstraint

from eventbooking.db.base import Base, TimestampMixin


class EventStatus:
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"

    ALL = (DRAFT, PUBLISHED, CANCELLED, POSTPONED)


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=EventStatus.PUBLISHED)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_capacity_non_negative"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint(
            "status IN ('draft', 'published', 'cancelled', 'postponed')",
            name="check_event_status",
        ),
        Index("ix_events_start_date", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity}, status={self.status})>"
