"""
Notification trigger for booking state changes.

DELIVERY MODEL
==============

The workflow calls `emit()` while it is still inside its transaction. Signals
are only queued on the session (`session.info`) at that point:

  - commit succeeded  -> `dispatch_pending()` hands each signal to every sink
  - transaction rolled back -> `discard_pending()` drops the queue

Delivery is best-effort. A sink that raises is logged and counted, and the
next sink still runs. Nothing a sink does can undo the booking, cancellation
or promotion that produced the signal, because that has already committed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventbooking.core.config import get_settings
from eventbooking.core.logging import get_logger
from eventbooking.core.metrics import record_notification
from eventbooking.models.notification import Notification

logger = get_logger(__name__)

PENDING_KEY = "pending_notifications"


class NotificationKind(str, Enum):
    BOOKING_CONFIRMED = "BookingConfirmed"
    WAITLIST_PROMOTED = "WaitlistPromoted"


@dataclass(frozen=True)
class NotificationSignal:
    kind: NotificationKind
    user_id: int
    event_id: int
    context: dict = field(default_factory=dict)


class NotificationSink(ABC):
    """Receives signals after the triggering transaction committed."""

    @abstractmethod
    async def deliver(self, signal: NotificationSignal) -> None:
        pass


class LogNotificationSink(NotificationSink):
    async def deliver(self, signal: NotificationSignal) -> None:
        logger.info(
            "notification_emitted",
            kind=signal.kind.value,
            user_id=signal.user_id,
            event_id=signal.event_id,
            **signal.context,
        )


# Title and message templates for in-app rows
IN_APP_TEMPLATES = {
    NotificationKind.BOOKING_CONFIRMED: (
        "Booking confirmed",
        'Your booking for "{event_title}" is confirmed. You earned {points_earned} points.',
    ),
    NotificationKind.WAITLIST_PROMOTED: (
        "Spot available - you're in!",
        'You\'ve been promoted from the waitlist for "{event_title}". You now have a confirmed booking.',
    ),
}


class InAppNotificationSink(NotificationSink):
    """Persists one `notifications` row per signal in its own session."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def deliver(self, signal: NotificationSignal) -> None:
        title, template = IN_APP_TEMPLATES[signal.kind]
        values = {"event_title": f"event {signal.event_id}", "points_earned": 0, **signal.context}
        async with self.session_factory() as session:
            session.add(
                Notification(
                    user_id=signal.user_id,
                    event_id=signal.event_id,
                    type=signal.kind.value,
                    title=title,
                    message=template.format(**values),
                )
            )
            await session.commit()


def build_sinks(names: str) -> list[NotificationSink]:
    """Build sinks from a comma-separated list of names."""
    sinks: list[NotificationSink] = []
    for name in (part.strip() for part in names.split(",")):
        if not name:
            continue
        if name == "log":
            sinks.append(LogNotificationSink())
        elif name == "in_app":
            from eventbooking.db.session import SessionLocal

            sinks.append(InAppNotificationSink(SessionLocal))
        else:
            raise ValueError(f"Unknown notification sink: {name}")
    return sinks


# Singleton sink list
_sinks: Optional[list[NotificationSink]] = None


def get_notification_sinks() -> list[NotificationSink]:
    global _sinks
    if _sinks is None:
        _sinks = build_sinks(get_settings().NOTIFICATION_SINKS)
    return _sinks


def configure_notification_sinks(sinks: Optional[list[NotificationSink]]) -> None:
    """Replace the configured sinks. None rebuilds them from settings on next use."""
    global _sinks
    _sinks = sinks


def emit(db: AsyncSession, kind: NotificationKind, user_id: int, event_id: int, **context) -> None:
    """Queue a signal; it is delivered only if the current transaction commits."""
    signal = NotificationSignal(kind=kind, user_id=user_id, event_id=event_id, context=context)
    db.info.setdefault(PENDING_KEY, []).append(signal)


def discard_pending(db: AsyncSession) -> None:
    db.info.pop(PENDING_KEY, None)


async def dispatch_pending(db: AsyncSession) -> None:
    signals = db.info.pop(PENDING_KEY, [])
    if not signals:
        return

    for signal in signals:
        for sink in get_notification_sinks():
            try:
                await sink.deliver(signal)
            except Exception as e:
                record_notification(signal.kind.value, delivered=False)
                logger.error(
                    "notification_delivery_failed",
                    kind=signal.kind.value,
                    user_id=signal.user_id,
                    event_id=signal.event_id,
                    sink=type(sink).__name__,
                    error=str(e),
                )
            else:
                record_notification(signal.kind.value, delivered=True)
