"""
Turning a seat into a confirmed booking, shared by direct booking and
waitlist promotion. Callers hold the event lock and have already decided
that the seat is available.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.clock import utcnow
from eventbooking.domain.loyalty import earn, loyalty_discount, points_for_booking
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event
from eventbooking.models.user import User


async def find_booking(db: AsyncSession, user_id: int, event_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id, Booking.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def confirm_seat(
    db: AsyncSession,
    event: Event,
    user: User,
    existing: Optional[Booking] = None,
) -> Booking:
    """
    Confirm `user` on `event` and credit the loyalty points.

    A cancelled row for the pair is re-activated with freshly computed points;
    otherwise a new row is inserted with a fresh check-in token. Points are
    priced at the user's current discount, before this booking's points are
    added. A re-activated row keeps its token but starts un-checked-in.
    """
    points = points_for_booking(event.price, loyalty_discount(user.loyalty_points))

    if existing is not None:
        booking = existing
        booking.status = BookingStatus.CONFIRMED
        booking.booked_at = utcnow()
        booking.points_earned = points
        booking.is_checked_in = False
        booking.checked_in_at = None
        booking.check_in_token = booking.check_in_token or str(uuid.uuid4())
    else:
        booking = Booking(
            user_id=user.id,
            event_id=event.id,
            status=BookingStatus.CONFIRMED,
            booked_at=utcnow(),
            points_earned=points,
            check_in_token=str(uuid.uuid4()),
        )
        db.add(booking)

    user.loyalty_points = earn(user.loyalty_points, points)
    await db.flush()
    return booking
