"""
Event service: the minimal event store the booking workflow reads from.
Status transitions (cancel, postpone) happen outside this service.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.clock import ensure_utc, utcnow
from eventbooking.core.logging import get_logger
from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import EventNotFoundError, InvalidStateError
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.event import Event, EventStatus
from eventbooking.schemas.event import EventCreate

logger = get_logger(__name__)

LISTED_STATUSES = (EventStatus.PUBLISHED, EventStatus.POSTPONED)


def _confirmed_counts():
    return (
        select(Booking.event_id, func.count(Booking.id).label("confirmed"))
        .where(Booking.status == BookingStatus.CONFIRMED)
        .group_by(Booking.event_id)
        .subquery()
    )


@transactional
async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    """Create a new event owned by the caller."""
    start_date = ensure_utc(event_data.start_date)
    if start_date <= utcnow():
        raise InvalidStateError("Event start date must be in the future")

    event = Event(
        title=event_data.title,
        description=event_data.description,
        location=event_data.location,
        start_date=start_date,
        end_date=ensure_utc(event_data.end_date),
        capacity=event_data.capacity,
        price=event_data.price,
        status=event_data.status,
        organizer_id=organizer_id,
    )
    db.add(event)
    await db.flush()

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: int) -> tuple[Event, int]:
    """Get a single event by ID with its confirmed booking count."""
    counts = _confirmed_counts()
    result = await db.execute(
        select(Event, func.coalesce(counts.c.confirmed, 0))
        .outerjoin(counts, counts.c.event_id == Event.id)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise EventNotFoundError(event_id)
    return row[0], row[1]


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[tuple[Event, int]], int]:
    """
    List bookable events with pagination, each with its confirmed booking count.
    Uses the ix_events_start_date index for date filtering.
    """
    query = select(Event).where(Event.status.in_(LISTED_STATUSES))
    if upcoming_only:
        query = query.where(Event.start_date >= utcnow())

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    counts = _confirmed_counts()
    events_query = (
        query
        .add_columns(func.coalesce(counts.c.confirmed, 0))
        .outerjoin(counts, counts.c.event_id == Event.id)
        .order_by(Event.start_date.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(events_query)
    events = [(row[0], row[1]) for row in result.all()]

    return events, total
