"""
Waitlist service: join, leave, position lookup and promotion.

Positions per event are kept as 1..N. Removing an entry (leave or promotion)
shifts every later entry of the same event down by one in a single UPDATE.
All writers hold the event lock from `capacity.lock_event`, so two removals on
the same event can never interleave and produce duplicate or skipped positions.
"""

from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.logging import get_logger
from eventbooking.core.metrics import waitlist_promotions, record_waitlist_change
from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import (
    ConflictError,
    EventNotFoundError,
    InvalidStateError,
    WaitlistEntryNotFoundError,
)
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event, EventStatus
from eventbooking.models.waitlist import WaitlistEntry
from eventbooking.services.capacity import can_confirm, count_confirmed, lock_event, lock_user
from eventbooking.services.confirmation import confirm_seat, find_booking
from eventbooking.services.notification_service import NotificationKind, emit

logger = get_logger(__name__)


async def find_entry(db: AsyncSession, user_id: int, event_id: int) -> Optional[WaitlistEntry]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.event_id == event_id, WaitlistEntry.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def remove_entry(db: AsyncSession, entry: WaitlistEntry) -> None:
    """Delete an entry and close the gap it leaves."""
    event_id, removed_position = entry.event_id, entry.position
    await db.delete(entry)
    await db.flush()
    await db.execute(
        update(WaitlistEntry)
        .where(WaitlistEntry.event_id == event_id, WaitlistEntry.position > removed_position)
        .values(position=WaitlistEntry.position - 1)
        .execution_options(synchronize_session="fetch")
    )


async def promote_next_locked(db: AsyncSession, event: Event) -> Optional[Booking]:
    """
    Promote the first waitlisted user of an already locked event.
    Returns the confirmed booking, or None when nothing was promoted.

    Cancelled and draft events never promote. Entries whose user is gone or
    already holds a confirmed booking are dropped and the next one is tried.
    """
    if event.status in (EventStatus.CANCELLED, EventStatus.DRAFT):
        logger.info("waitlist_promotion_skipped", event_id=event.id, status=event.status)
        return None

    while True:
        result = await db.execute(
            select(WaitlistEntry)
            .where(WaitlistEntry.event_id == event.id)
            .order_by(WaitlistEntry.position.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            return None

        # The freed seat may already be taken again
        confirmed = await count_confirmed(db, event.id)
        if not can_confirm(event, confirmed):
            logger.info("waitlist_promotion_skipped", event_id=event.id, confirmed=confirmed, capacity=event.capacity)
            return None

        user = await lock_user(db, entry.user_id)
        if user is None:
            await remove_entry(db, entry)
            continue

        existing = await find_booking(db, user.id, event.id)
        if existing is not None and existing.status == BookingStatus.CONFIRMED:
            logger.info("waitlist_entry_dropped", event_id=event.id, user_id=user.id, reason="already_booked")
            await remove_entry(db, entry)
            continue
        break

    booking = await confirm_seat(db, event, user, existing)
    position = entry.position
    await remove_entry(db, entry)

    emit(
        db,
        NotificationKind.WAITLIST_PROMOTED,
        user.id,
        event.id,
        event_title=event.title,
        booking_id=booking.id,
        points_earned=booking.points_earned,
    )
    waitlist_promotions.inc()
    logger.info(
        "waitlist_promoted",
        event_id=event.id,
        user_id=user.id,
        booking_id=booking.id,
        position=position,
        points_earned=booking.points_earned,
    )
    return booking


@transactional
async def promote_next(db: AsyncSession, event_id: int) -> Optional[Booking]:
    """Promote the first waitlisted user of an event if a seat is free. No-op otherwise."""
    event = await lock_event(db, event_id)
    if event is None:
        return None
    return await promote_next_locked(db, event)


@transactional
async def join_waitlist(db: AsyncSession, user_id: int, event_id: int) -> WaitlistEntry:
    """Append the user to a full event's waitlist."""
    event = await lock_event(db, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    if event.status == EventStatus.CANCELLED:
        raise InvalidStateError("Event is cancelled")
    if event.status == EventStatus.DRAFT:
        raise InvalidStateError("Event is not published")

    confirmed = await count_confirmed(db, event_id)
    if can_confirm(event, confirmed):
        raise InvalidStateError("Event still has available spots. Book directly.")

    booking = await find_booking(db, user_id, event_id)
    if booking is not None and booking.status == BookingStatus.CONFIRMED:
        raise ConflictError("You already have a booking for this event")
    if await find_entry(db, user_id, event_id) is not None:
        raise ConflictError("Already on waitlist")

    result = await db.execute(
        select(func.max(WaitlistEntry.position)).where(WaitlistEntry.event_id == event_id)
    )
    position = (result.scalar_one() or 0) + 1

    entry = WaitlistEntry(event_id=event_id, user_id=user_id, position=position)
    db.add(entry)
    await db.flush()

    record_waitlist_change("join")
    logger.info("waitlist_joined", event_id=event_id, user_id=user_id, position=position)
    return entry


@transactional
async def leave_waitlist(db: AsyncSession, user_id: int, event_id: int) -> None:
    event = await lock_event(db, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    entry = await find_entry(db, user_id, event_id)
    if entry is None:
        raise WaitlistEntryNotFoundError(event_id)

    position = entry.position
    await remove_entry(db, entry)

    record_waitlist_change("leave")
    logger.info("waitlist_left", event_id=event_id, user_id=user_id, position=position)


async def get_waitlist_position(db: AsyncSession, user_id: int, event_id: int) -> WaitlistEntry:
    entry = await find_entry(db, user_id, event_id)
    if entry is None:
        raise WaitlistEntryNotFoundError(event_id)
    return entry


async def get_event_waitlist(db: AsyncSession, event_id: int) -> list[WaitlistEntry]:
    """Entries of one event in promotion order."""
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.event_id == event_id)
        .order_by(WaitlistEntry.position.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
