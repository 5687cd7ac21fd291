"""
Service-level tests for the booking workflow: re-booking, points bookkeeping,
atomicity of rejected operations and the last-seat race.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import CapacityExceededError, InvalidStateError, TooLateError
from eventbooking.models import Booking, BookingStatus, WaitlistEntry
from eventbooking.services.booking_service import (
    can_cancel,
    cancel_all_for_event,
    cancel_booking,
    create_booking,
)
from eventbooking.services.capacity import count_confirmed
from eventbooking.services.waitlist_service import join_waitlist


@pytest.mark.asyncio
async def test_rebooking_reuses_row_with_fresh_points(db_session, make_user, make_event):
    user = await make_user("alice")
    event = await make_event(user, price=Decimal("100.00"))

    booking = await create_booking(db_session, user.id, event.id)
    assert booking.points_earned == 1000

    await cancel_booking(db_session, user.id, booking.id)
    await db_session.refresh(user)
    assert user.loyalty_points == 0

    # Silver by now: the second booking is priced at 10% off
    user.loyalty_points = 5000
    await db_session.commit()

    rebooked = await create_booking(db_session, user.id, event.id)
    assert rebooked.id == booking.id
    assert rebooked.status == BookingStatus.CONFIRMED
    assert rebooked.points_earned == 900

    await db_session.refresh(user)
    assert user.loyalty_points == 5900


@pytest.mark.asyncio
async def test_double_cancel_does_not_deduct_twice(db_session, make_user, make_event):
    user = await make_user("bob", loyalty_points=2000)
    event = await make_event(user, price=Decimal("100.00"))

    booking = await create_booking(db_session, user.id, event.id)
    assert booking.points_earned == 950

    await cancel_booking(db_session, user.id, booking.id)
    with pytest.raises(InvalidStateError):
        await cancel_booking(db_session, user.id, booking.id)

    await db_session.refresh(user)
    await db_session.refresh(booking)
    assert user.loyalty_points == 2000
    assert booking.points_earned == 0


@pytest.mark.asyncio
async def test_rejected_booking_changes_nothing(db_session, make_user, make_event, notifications):
    owner = await make_user("owner")
    late = await make_user("late", loyalty_points=300)
    event = await make_event(owner, capacity=1, price=Decimal("100.00"))

    await create_booking(db_session, owner.id, event.id)
    await db_session.refresh(event)
    version = event.version
    delivered = len(notifications.signals)

    with pytest.raises(CapacityExceededError):
        await create_booking(db_session, late.id, event.id)

    await db_session.refresh(event)
    await db_session.refresh(late)
    assert event.version == version
    assert late.loyalty_points == 300
    assert len(notifications.signals) == delivered
    assert "pending_notifications" not in db_session.info


@pytest.mark.asyncio
async def test_confirmation_is_signalled_after_commit(db_session, make_user, make_event, notifications):
    user = await make_user("carol")
    event = await make_event(user)

    booking = await create_booking(db_session, user.id, event.id)

    assert notifications.kinds() == ["BookingConfirmed"]
    signal = notifications.signals[0]
    assert signal.user_id == user.id
    assert signal.event_id == event.id
    assert signal.context["booking_id"] == booking.id


@pytest.mark.asyncio
async def test_last_seat_race(session_factory, make_user, make_event):
    """Two users race for one seat: exactly one wins."""
    first = await make_user("racer-1")
    second = await make_user("racer-2")
    event = await make_event(first, capacity=1)

    async def attempt(user_id: int) -> str:
        async with session_factory() as session:
            try:
                await create_booking(session, user_id, event.id)
            except CapacityExceededError:
                return "full"
            return "booked"

    results = await asyncio.gather(attempt(first.id), attempt(second.id))
    assert sorted(results) == ["booked", "full"]

    async with session_factory() as session:
        assert await count_confirmed(session, event.id) == 1


@pytest.mark.asyncio
async def test_cancellation_lock(make_user, make_event):
    user = await make_user("dave")
    near = await make_event(user, days_ahead=6)
    far = await make_event(user, days_ahead=8)

    assert not can_cancel(near)
    assert can_cancel(far)


@pytest.mark.asyncio
async def test_cancel_within_lock_raises(db_session, make_user, make_event):
    user = await make_user("erin")
    event = await make_event(user, days_ahead=3)
    booking = await create_booking(db_session, user.id, event.id)

    with pytest.raises(TooLateError):
        await cancel_booking(db_session, user.id, booking.id)

    await db_session.refresh(booking)
    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_waitlist_scenario(db_session, make_user, make_event, notifications):
    """A books the only seat, B waits, A cancels, B is promoted."""
    a = await make_user("user-a")
    b = await make_user("user-b")
    event = await make_event(a, capacity=1, price=Decimal("100.00"))
    a_id, b_id, event_id = a.id, b.id, event.id

    booking_a = await create_booking(db_session, a_id, event_id)
    booking_a_id = booking_a.id
    await db_session.refresh(a)
    assert a.loyalty_points == 1000

    with pytest.raises(CapacityExceededError):
        await create_booking(db_session, b_id, event_id)

    entry = await join_waitlist(db_session, b_id, event_id)
    assert entry.position == 1

    await cancel_booking(db_session, a_id, booking_a_id)
    await db_session.refresh(a)
    await db_session.refresh(b)
    assert a.loyalty_points == 0
    assert b.loyalty_points == 1000

    result = await db_session.execute(
        select(Booking).where(Booking.user_id == b_id, Booking.event_id == event_id)
    )
    booking_b = result.scalar_one()
    assert booking_b.status == BookingStatus.CONFIRMED
    assert booking_b.points_earned == 1000

    result = await db_session.execute(select(WaitlistEntry).where(WaitlistEntry.event_id == event_id))
    assert result.scalars().all() == []
    assert notifications.kinds() == ["BookingConfirmed", "WaitlistPromoted"]


@pytest.mark.asyncio
async def test_cancel_all_promotes_head_once(db_session, make_user, make_event):
    holder = await make_user("holder")
    waiting = [await make_user(f"waiting-{i}") for i in range(2)]
    event = await make_event(holder, capacity=1)

    await create_booking(db_session, holder.id, event.id)
    for user in waiting:
        await join_waitlist(db_session, user.id, event.id)

    cancelled = await cancel_all_for_event(db_session, holder.id, event.id)
    assert len(cancelled) == 1

    result = await db_session.execute(
        select(WaitlistEntry).where(WaitlistEntry.event_id == event.id)
    )
    remaining = result.scalars().all()
    assert [(e.user_id, e.position) for e in remaining] == [(waiting[1].id, 1)]
    assert await count_confirmed(db_session, event.id) == 1


@pytest.mark.asyncio
async def test_transient_failure_is_retried_once(db_session):
    calls = []

    @transactional
    async def flaky(db):
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE events", {}, Exception("database is locked"))
        return "done"

    assert await flaky(db_session) == "done"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_persistent_failure_propagates(db_session):
    calls = []

    @transactional
    async def broken(db):
        calls.append(1)
        raise OperationalError("UPDATE events", {}, Exception("database is locked"))

    with pytest.raises(OperationalError):
        await broken(db_session)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_domain_errors_are_not_retried(db_session):
    calls = []

    @transactional
    async def rejected(db):
        calls.append(1)
        raise InvalidStateError("nope")

    with pytest.raises(InvalidStateError):
        await rejected(db_session)
    assert len(calls) == 1
