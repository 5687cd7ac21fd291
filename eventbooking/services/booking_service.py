"""
Booking workflow: book, cancel, cancel-all and listing.

STATE MACHINE (per user and event)
==================================

  no booking --book--> confirmed --cancel--> cancelled --book--> confirmed ...

  - One row per (user, event). Re-booking re-activates the cancelled row with a
    new booked_at and freshly computed points; points are never accumulated on
    the row.
  - Booking credits the user with points_for_booking(price, current discount).
    Cancelling deducts exactly what the row recorded (clamped at zero) and
    zeroes it, so a double cancel can never double-deduct.
  - Cancellation is locked within 7 days of the start, unless the event itself
    was cancelled.
  - Freeing a seat immediately tries to promote the head of the waitlist in the
    same transaction.

Every operation takes the per-event lock first (see services/capacity.py) and
runs inside `transactional`, so a rejected call changes nothing.
"""

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.clock import ensure_utc, utcnow
from eventbooking.core.config import get_settings
from eventbooking.core.logging import get_logger
from eventbooking.core.metrics import record_booking_attempt, record_cancellation
from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    ConflictError,
    DomainError,
    EventNotFoundError,
    InvalidStateError,
    TooLateError,
    UserNotFoundError,
)
from eventbooking.domain.loyalty import deduct
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event, EventStatus
from eventbooking.models.user import User
from eventbooking.services.capacity import can_confirm, count_confirmed, lock_event, lock_user
from eventbooking.services.confirmation import confirm_seat, find_booking
from eventbooking.services.notification_service import NotificationKind, emit
from eventbooking.services.waitlist_service import find_entry, promote_next_locked, remove_entry

logger = get_logger(__name__)


def can_cancel(event: Event, now=None) -> bool:
    """The cancellation lock is waived only when the event itself was cancelled."""
    if event.status == EventStatus.CANCELLED:
        return True
    now = now or utcnow()
    lock_days = get_settings().CANCELLATION_LOCK_DAYS
    return ensure_utc(event.start_date) > now + timedelta(days=lock_days)


def _release(user: User, booking: Booking) -> int:
    """Cancel one booking and take back its points. Returns the points removed."""
    points = booking.points_earned
    user.loyalty_points = deduct(user.loyalty_points, points)
    booking.points_earned = 0
    booking.status = BookingStatus.CANCELLED
    return points


@transactional
async def _create_booking(db: AsyncSession, user_id: int, event_id: int) -> Booking:
    event = await lock_event(db, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    if event.status == EventStatus.CANCELLED:
        raise InvalidStateError("Event has been cancelled")
    if event.status == EventStatus.DRAFT:
        raise InvalidStateError("Cannot book a draft event")

    confirmed = await count_confirmed(db, event_id)
    if not can_confirm(event, confirmed):
        logger.warning(
            "booking_failed_no_seats",
            event_id=event_id,
            confirmed=confirmed,
            capacity=event.capacity,
        )
        raise CapacityExceededError(event_id)

    existing = await find_booking(db, user_id, event_id)
    if existing is not None and existing.status == BookingStatus.CONFIRMED:
        raise ConflictError("You already have a booking for this event")

    user = await lock_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    reactivated = existing is not None
    booking = await confirm_seat(db, event, user, existing)

    # A direct booking takes the user off this event's waitlist
    entry = await find_entry(db, user_id, event_id)
    if entry is not None:
        await remove_entry(db, entry)

    emit(
        db,
        NotificationKind.BOOKING_CONFIRMED,
        user_id,
        event_id,
        event_title=event.title,
        booking_id=booking.id,
        points_earned=booking.points_earned,
    )
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        event_id=event_id,
        points_earned=booking.points_earned,
        reactivated=reactivated,
    )
    return booking


async def create_booking(db: AsyncSession, user_id: int, event_id: int) -> Booking:
    """
    Book a seat, or re-activate the user's cancelled booking for the event.

    Raises:
        EventNotFoundError / UserNotFoundError: unknown event or user.
        InvalidStateError: event cancelled or still a draft.
        CapacityExceededError: no seat left.
        ConflictError: the user already holds a confirmed booking.
    """
    try:
        booking = await _create_booking(db, user_id, event_id)
    except DomainError as e:
        record_booking_attempt(e.code.value.lower())
        raise
    record_booking_attempt("success")
    return booking


@transactional
async def _cancel_booking(db: AsyncSession, user_id: int, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if booking is None or booking.user_id != user_id:
        raise BookingNotFoundError(booking_id)

    event = await lock_event(db, booking.event_id)
    if event is None:
        raise EventNotFoundError(booking.event_id)

    # Re-read under the lock; a concurrent cancel may have won
    booking = await find_booking(db, user_id, event.id)
    if booking is None or booking.id != booking_id:
        raise BookingNotFoundError(booking_id)
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError("Booking is already cancelled")
    if not can_cancel(event):
        raise TooLateError(get_settings().CANCELLATION_LOCK_DAYS)

    user = await lock_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    points = _release(user, booking)
    await db.flush()

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=user_id,
        event_id=event.id,
        points_deducted=points,
    )

    await promote_next_locked(db, event)
    return booking


async def cancel_booking(db: AsyncSession, user_id: int, booking_id: int) -> Booking:
    """
    Cancel a booking, deduct its points and promote the next waitlisted user.

    Raises:
        BookingNotFoundError: missing booking or owned by another user.
        InvalidStateError: already cancelled.
        TooLateError: inside the cancellation lock of a live event.
    """
    try:
        booking = await _cancel_booking(db, user_id, booking_id)
    except DomainError as e:
        record_cancellation(e.code.value.lower())
        raise
    record_cancellation("success")
    return booking


@transactional
async def cancel_all_for_event(db: AsyncSession, user_id: int, event_id: int) -> list[Booking]:
    """
    Cancel every confirmed booking the user holds for one event.

    The cancellation lock is checked once, against the earliest booking.
    Bookings are unique per (user, event), so at most one seat is freed and
    the waitlist gets a single promotion attempt.
    """
    event = await lock_event(db, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    result = await db.execute(
        select(Booking)
        .where(
            Booking.user_id == user_id,
            Booking.event_id == event_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        .order_by(Booking.booked_at.asc())
        .execution_options(populate_existing=True)
    )
    bookings = list(result.scalars().all())
    if not bookings:
        raise BookingNotFoundError(None, "No active bookings found for this event")
    if not can_cancel(event):
        raise TooLateError(get_settings().CANCELLATION_LOCK_DAYS)

    user = await lock_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    points = sum(_release(user, booking) for booking in bookings)
    await db.flush()

    logger.info(
        "bookings_cancelled_for_event",
        user_id=user_id,
        event_id=event_id,
        count=len(bookings),
        points_deducted=points,
    )

    await promote_next_locked(db, event)

    return bookings


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.booked_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
