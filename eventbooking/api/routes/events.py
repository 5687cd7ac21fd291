"""
Event endpoints with Redis caching on list operations, plus the waitlist.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.db.session import get_db
from eventbooking.schemas.event import EventCreate, EventResponse, EventListResponse
from eventbooking.schemas.waitlist import WaitlistPositionResponse, WaitlistEntryResponse
from eventbooking.services.event_service import create_event, get_event, list_events
from eventbooking.services.waitlist_service import (
    join_waitlist,
    leave_waitlist,
    get_waitlist_position,
    get_event_waitlist,
)
from eventbooking.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from eventbooking.core.security import get_current_user_id
from eventbooking.domain.errors import ForbiddenError
from eventbooking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Requires authentication."""
    event = await create_event(db, event_data, user_id)
    await invalidate_event_cache()
    return EventResponse.from_event(event, 0)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List published events with pagination.
    Results are cached in Redis until the next booking or waitlist change.
    """
    cached = await get_cached_events(page, page_size, upcoming_only)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, upcoming_only)

    response_data = {
        "events": [EventResponse.from_event(e, confirmed).model_dump() for e, confirmed in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_events(page, page_size, upcoming_only, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (needs real-time seat counts)."""
    event, confirmed = await get_event(db, event_id)
    return EventResponse.from_event(event, confirmed)


# Waitlist

@router.post(
    "/{event_id}/waitlist",
    response_model=WaitlistPositionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_waitlist_endpoint(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Join the waitlist of a fully booked event."""
    entry = await join_waitlist(db, user_id, event_id)
    return entry


@router.delete("/{event_id}/waitlist", status_code=status.HTTP_204_NO_CONTENT)
async def leave_waitlist_endpoint(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await leave_waitlist(db, user_id, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/waitlist/position", response_model=WaitlistPositionResponse)
async def waitlist_position_endpoint(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_waitlist_position(db, user_id, event_id)


@router.get("/{event_id}/waitlist", response_model=list[WaitlistEntryResponse])
async def event_waitlist_endpoint(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Full waitlist in promotion order. Organizer only."""
    event, _ = await get_event(db, event_id)
    if event.organizer_id != user_id:
        raise ForbiddenError("Only the organizer can view the waitlist")
    return await get_event_waitlist(db, event_id)
