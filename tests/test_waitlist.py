"""
Tests for the waitlist: joining, leaving, gap-free positions and promotion.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from eventbooking.domain.errors import InvalidStateError
from eventbooking.models import Booking, BookingStatus, EventStatus, WaitlistEntry
from eventbooking.services.booking_service import cancel_booking, create_booking
from eventbooking.services.waitlist_service import (
    get_event_waitlist,
    join_waitlist,
    leave_waitlist,
    promote_next,
)


@pytest.fixture
def fill(db_session):
    """Book every seat of an event with throwaway users."""

    async def _fill(event, make_user):
        for i in range(event.capacity):
            user = await make_user(f"seat-{event.id}-{i}")
            await create_booking(db_session, user.id, event.id)

    return _fill


@pytest.mark.asyncio
async def test_join_full_event(client: AsyncClient, auth_headers, other_headers, small_event):
    event_id = small_event.id
    await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=other_headers)

    response = await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["event_id"] == event_id
    assert data["position"] == 1

    position = await client.get(f"/api/v1/events/{event_id}/waitlist/position", headers=auth_headers)
    assert position.status_code == 200
    assert position.json()["position"] == 1


@pytest.mark.asyncio
async def test_join_event_with_free_seats(client: AsyncClient, auth_headers, test_event):
    response = await client.post(f"/api/v1/events/{test_event.id}/waitlist", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_join_unknown_event(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/events/99999/waitlist", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_join_twice(client: AsyncClient, auth_headers, other_headers, small_event):
    event_id = small_event.id
    await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=other_headers)
    await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)

    response = await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_join_own_booked_event(client: AsyncClient, auth_headers, small_event):
    """Holding the only seat, the user cannot also queue for it."""
    event_id = small_event.id
    await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=auth_headers)

    response = await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_join_cancelled_event(db_session, make_user, make_event):
    organizer = await make_user("organizer")
    event = await make_event(organizer, capacity=1, status=EventStatus.CANCELLED)

    with pytest.raises(InvalidStateError):
        await join_waitlist(db_session, organizer.id, event.id)


@pytest.mark.asyncio
async def test_position_when_not_waitlisted(client: AsyncClient, auth_headers, small_event):
    response = await client.get(f"/api/v1/events/{small_event.id}/waitlist/position", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_leave_closes_gap(db_session, make_user, make_event, fill):
    organizer = await make_user("organizer")
    event = await make_event(organizer, capacity=1)
    event_id = event.id
    await fill(event, make_user)

    a, b, c = [await make_user(name) for name in ("wait-a", "wait-b", "wait-c")]
    ids = [a.id, b.id, c.id]
    for user_id in ids:
        await join_waitlist(db_session, user_id, event_id)

    entries = await get_event_waitlist(db_session, event_id)
    assert [(e.user_id, e.position) for e in entries] == list(zip(ids, [1, 2, 3]))

    await leave_waitlist(db_session, ids[1], event_id)

    entries = await get_event_waitlist(db_session, event_id)
    assert [(e.user_id, e.position) for e in entries] == [(ids[0], 1), (ids[2], 2)]


@pytest.mark.asyncio
async def test_leave_via_api(client: AsyncClient, auth_headers, other_headers, small_event):
    event_id = small_event.id
    await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=other_headers)
    await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)

    response = await client.delete(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 204

    response = await client.delete(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_promote_next_is_noop_when_full(db_session, make_user, make_event, fill, notifications):
    organizer = await make_user("organizer")
    event = await make_event(organizer, capacity=1)
    event_id = event.id
    await fill(event, make_user)

    waiting = await make_user("waiting")
    await join_waitlist(db_session, waiting.id, event_id)

    assert await promote_next(db_session, event_id) is None
    entries = await get_event_waitlist(db_session, event_id)
    assert len(entries) == 1
    assert "WaitlistPromoted" not in notifications.kinds()


@pytest.mark.asyncio
async def test_promote_next_unknown_event(db_session):
    assert await promote_next(db_session, 99999) is None


@pytest.mark.asyncio
async def test_cancellation_promotes_head(client: AsyncClient, auth_headers, other_headers, small_event):
    """The seat freed by a cancellation goes to position 1."""
    event_id = small_event.id
    booked = await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=other_headers)
    await client.post(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)

    await client.delete(f"/api/v1/bookings/{booked.json()['id']}", headers=other_headers)

    mine = await client.get("/api/v1/bookings/mine", headers=auth_headers)
    assert [(b["event_id"], b["status"]) for b in mine.json()] == [(event_id, "confirmed")]

    position = await client.get(f"/api/v1/events/{event_id}/waitlist/position", headers=auth_headers)
    assert position.status_code == 404

    me = await client.get("/api/v1/users/me", headers=auth_headers)
    assert me.json()["loyalty_points"] == 1000


@pytest.mark.asyncio
async def test_organizer_views_waitlist(
    client: AsyncClient, auth_headers, other_headers, make_user, user_headers, small_event
):
    event_id = small_event.id
    await client.post("/api/v1/bookings/", json={"event_id": event_id}, headers=auth_headers)
    await client.post(f"/api/v1/events/{event_id}/waitlist", headers=other_headers)

    # small_event is organized by test_user
    response = await client.get(f"/api/v1/events/{event_id}/waitlist", headers=auth_headers)
    assert response.status_code == 200
    assert [e["position"] for e in response.json()] == [1]

    stranger = await make_user("stranger")
    response = await client.get(f"/api/v1/events/{event_id}/waitlist", headers=user_headers(stranger))
    assert response.status_code == 403


async def _booking_for(db_session, user_id: int, event_id: int):
    result = await db_session.execute(
        select(Booking)
        .where(Booking.user_id == user_id, Booking.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_cancelled_event_never_promotes(db_session, make_user, make_event, notifications):
    """Cancelling a seat of a called-off event leaves the waitlist alone."""
    a = await make_user("holder")
    b = await make_user("hopeful")
    event = await make_event(a, capacity=1, price=Decimal("100.00"))
    a_id, b_id, event_id = a.id, b.id, event.id

    booking = await create_booking(db_session, a_id, event_id)
    await join_waitlist(db_session, b_id, event_id)

    event.status = EventStatus.CANCELLED
    await db_session.commit()

    await cancel_booking(db_session, a_id, booking.id)

    assert await _booking_for(db_session, b_id, event_id) is None
    await db_session.refresh(b)
    assert b.loyalty_points == 0
    assert [e.user_id for e in await get_event_waitlist(db_session, event_id)] == [b_id]
    assert notifications.kinds() == ["BookingConfirmed"]

    assert await promote_next(db_session, event_id) is None


@pytest.mark.asyncio
async def test_direct_booking_leaves_waitlist(db_session, make_user, make_event):
    """Booking a seat that opened up directly takes the user off the queue."""
    a, b, c = [await make_user(name) for name in ("seat-a", "queue-b", "queue-c")]
    event = await make_event(a, capacity=1, price=Decimal("100.00"))
    a_id, b_id, c_id, event_id = a.id, b.id, c.id, event.id

    booking_a = await create_booking(db_session, a_id, event_id)
    await join_waitlist(db_session, b_id, event_id)
    await join_waitlist(db_session, c_id, event_id)

    event.capacity = 2
    await db_session.commit()

    booking_b = await create_booking(db_session, b_id, event_id)
    entries = await get_event_waitlist(db_session, event_id)
    assert [(e.user_id, e.position) for e in entries] == [(c_id, 1)]

    await cancel_booking(db_session, a_id, booking_a.id)

    await db_session.refresh(b)
    await db_session.refresh(booking_b)
    assert booking_b.points_earned == 1000
    assert b.loyalty_points == booking_b.points_earned

    booking_c = await _booking_for(db_session, c_id, event_id)
    assert booking_c.status == BookingStatus.CONFIRMED
    assert await get_event_waitlist(db_session, event_id) == []


@pytest.mark.asyncio
async def test_promotion_skips_user_already_booked(db_session, make_user, make_event, notifications):
    """A head entry whose user already holds a seat is dropped, not credited again."""
    a, b, c = [await make_user(name) for name in ("seat-a", "stale-b", "queue-c")]
    event = await make_event(a, capacity=1, price=Decimal("100.00"))
    a_id, b_id, c_id, event_id = a.id, b.id, c.id, event.id

    booking_a = await create_booking(db_session, a_id, event_id)
    await join_waitlist(db_session, b_id, event_id)
    await join_waitlist(db_session, c_id, event_id)

    # b ends up holding a seat while still queued
    db_session.add(Booking(user_id=b_id, event_id=event_id, status=BookingStatus.CONFIRMED, points_earned=0))
    event.capacity = 2
    await db_session.commit()

    await cancel_booking(db_session, a_id, booking_a.id)

    await db_session.refresh(b)
    assert b.loyalty_points == 0
    booking_c = await _booking_for(db_session, c_id, event_id)
    assert booking_c.status == BookingStatus.CONFIRMED

    result = await db_session.execute(select(WaitlistEntry).where(WaitlistEntry.event_id == event_id))
    assert result.scalars().all() == []
    assert notifications.kinds().count("WaitlistPromoted") == 1
