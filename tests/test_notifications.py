"""
Tests for notification delivery after commit.
"""

import pytest
from sqlalchemy import select

from eventbooking.models import Notification
from eventbooking.services.booking_service import create_booking
from eventbooking.services.notification_service import (
    InAppNotificationSink,
    LogNotificationSink,
    NotificationSink,
    build_sinks,
    configure_notification_sinks,
)


class FailingSink(NotificationSink):
    async def deliver(self, signal):
        raise RuntimeError("mail server down")


@pytest.mark.asyncio
async def test_in_app_sink_writes_row(db_session, session_factory, make_user, make_event):
    user = await make_user("reader")
    event = await make_event(user, title="Jazz Night")
    configure_notification_sinks([InAppNotificationSink(session_factory)])

    booking = await create_booking(db_session, user.id, event.id)

    result = await db_session.execute(select(Notification).where(Notification.user_id == user.id))
    rows = result.scalars().all()
    assert len(rows) == 1
    assert rows[0].type == "BookingConfirmed"
    assert rows[0].event_id == event.id
    assert "Jazz Night" in rows[0].message
    assert str(booking.points_earned) in rows[0].message
    assert rows[0].is_read is False


@pytest.mark.asyncio
async def test_failing_sink_does_not_break_booking(db_session, make_user, make_event, notifications):
    user = await make_user("unlucky")
    event = await make_event(user)
    configure_notification_sinks([FailingSink(), notifications])

    booking = await create_booking(db_session, user.id, event.id)

    assert booking.id is not None
    assert notifications.kinds() == ["BookingConfirmed"]


def test_build_sinks_from_names():
    sinks = build_sinks("log, in_app")
    assert isinstance(sinks[0], LogNotificationSink)
    assert isinstance(sinks[1], InAppNotificationSink)
    assert build_sinks("") == []


def test_build_sinks_rejects_unknown_name():
    with pytest.raises(ValueError):
        build_sinks("carrier-pigeon")
