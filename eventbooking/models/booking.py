"""
Booking model representing a user's reservation for an event.

Key design decisions:
- Unique constraint on (user_id, event_id): re-booking re-activates the same row
- Status field allows cancellation without deleting records
- points_earned is what was credited for the current confirmation, zeroed on cancel
- check_in_token is issued on first confirmation and kept across re-activations
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint

from eventbooking.core.clock import utcnow
from eventbooking.db.base import Base, TimestampMixin


class BookingStatus:
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED)
    booked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    points_earned = Column(Integer, nullable=False, default=0)
    is_checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    check_in_token = Column(String(36), unique=True, index=True, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_user_event_booking"),
        CheckConstraint("points_earned >= 0", name="check_booking_points_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
