"""
Door check-in for confirmed bookings.

Attendees show the QR code carrying their booking's check-in token; the
organizer scans it, or checks them in by booking id from the attendee list.
Only the event's organizer may check anyone in.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.clock import utcnow
from eventbooking.core.logging import get_logger
from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import BookingNotFoundError, ForbiddenError, InvalidStateError
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event
from eventbooking.models.user import User

logger = get_logger(__name__)


async def _locked_booking(db: AsyncSession, *criteria) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(*criteria)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _mark_checked_in(db: AsyncSession, organizer_id: int, booking: Booking) -> Booking:
    result = await db.execute(select(Event.organizer_id).where(Event.id == booking.event_id))
    if result.scalar_one() != organizer_id:
        raise ForbiddenError("Only the organizer can check attendees in")
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError("Cannot check in a cancelled booking")
    if booking.is_checked_in:
        raise InvalidStateError("Already checked in")

    booking.is_checked_in = True
    booking.checked_in_at = utcnow()
    await db.flush()

    logger.info("booking_checked_in", booking_id=booking.id, event_id=booking.event_id, user_id=booking.user_id)
    return booking


@transactional
async def check_in(db: AsyncSession, organizer_id: int, booking_id: int) -> Booking:
    booking = await _locked_booking(db, Booking.id == booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return await _mark_checked_in(db, organizer_id, booking)


@transactional
async def check_in_by_token(db: AsyncSession, organizer_id: int, token: str) -> Booking:
    booking = await _locked_booking(db, Booking.check_in_token == token)
    if booking is None:
        raise BookingNotFoundError(None, "Check-in token not found")
    return await _mark_checked_in(db, organizer_id, booking)


async def get_check_in_info(db: AsyncSession, token: str) -> tuple[Booking, str, str]:
    """What the scanner shows before confirming: the booking, attendee name and event title."""
    result = await db.execute(
        select(Booking, User.name, Event.title)
        .join(User, User.id == Booking.user_id)
        .join(Event, Event.id == Booking.event_id)
        .where(Booking.check_in_token == token)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise BookingNotFoundError(None, "Check-in token not found")
    return row[0], row[1], row[2]
