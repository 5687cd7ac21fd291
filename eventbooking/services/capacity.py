"""
Capacity guard and per-event locking.

CONCURRENCY STRATEGY: Lock the Event Row First
==============================================

Problem:
  Two users try to book the last seat simultaneously.
  Both count confirmed bookings = capacity - 1, both insert, both succeed.
  Result: Overbooking.

Solution:
  Every capacity-sensitive transaction (book, cancel, promote, join/leave the
  waitlist) starts with

    UPDATE events SET version = version + 1 WHERE id = :event_id

  and only then counts bookings or touches waitlist positions.

  - PostgreSQL: the UPDATE takes the row lock, so a second transaction on the
    same event waits until the first commits and then reads its writes.
    Transactions on other events are unaffected.
  - SQLite: the UPDATE takes the database write lock; the second writer waits
    on the busy timeout.

  A rejected operation rolls back, so the version bump disappears with it.

User rows are locked with SELECT ... FOR UPDATE before their loyalty balance
changes, so two bookings for different events cannot lose each other's points.
"""

from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event
from eventbooking.models.user import User


def can_confirm(event: Event, confirmed_count: int) -> bool:
    return confirmed_count < event.capacity


async def lock_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    """Take the per-event lock and return the freshly read event, or None."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None

    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def count_confirmed(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.event_id == event_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
    )
    return result.scalar_one()


async def lock_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
