"""
Booking endpoints: thin HTTP shims over the booking workflow.
Domain errors are translated to status codes by the handler in main.py.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.db.session import get_db
from eventbooking.schemas.booking import BookingCreate, BookingResponse, BookingCancelResponse, BulkCancelResponse, CheckInInfoResponse
from eventbooking.services.booking_service import (
    create_booking,
    cancel_booking,
    cancel_all_for_event,
    get_user_bookings,
)
from eventbooking.services.checkin_service import check_in, check_in_by_token, get_check_in_info
from eventbooking.services.cache_service import invalidate_event_cache
from eventbooking.core.metrics import booking_latency
from eventbooking.core.security import get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a seat for an event.

    The event row is locked for the duration of the transaction, so two
    requests racing for the last seat resolve to one booking and one 400.
    Re-booking after a cancellation re-activates the same booking.
    """
    with booking_latency.time():
        booking = await create_booking(db, user_id, booking_data.event_id)
    await invalidate_event_cache()
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await get_user_bookings(db, user_id)


@router.get("/mine", response_model=list[BookingResponse])
async def list_my_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_bookings(db, user_id)


@router.delete("/events/{event_id}/mine", response_model=BulkCancelResponse)
async def cancel_all_for_event_endpoint(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel every active booking the caller holds for one event."""
    bookings = await cancel_all_for_event(db, user_id, event_id)
    await invalidate_event_cache()
    return BulkCancelResponse(
        message="Bookings cancelled successfully",
        event_id=event_id,
        booking_ids=[b.id for b in bookings],
    )


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; the freed seat goes to the head of the waitlist."""
    booking = await cancel_booking(db, user_id, booking_id)
    await invalidate_event_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )


# Check-in

@router.get("/checkin/{token}", response_model=CheckInInfoResponse)
async def check_in_info_endpoint(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """What the door scanner shows for a QR token before checking in."""
    booking, attendee_name, event_title = await get_check_in_info(db, token)
    return CheckInInfoResponse(
        booking_id=booking.id,
        user_id=booking.user_id,
        attendee_name=attendee_name,
        event_title=event_title,
        is_checked_in=booking.is_checked_in,
        checked_in_at=booking.checked_in_at,
    )


@router.post("/checkin/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def check_in_by_token_endpoint(
    token: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await check_in_by_token(db, user_id, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{booking_id}/checkin", status_code=status.HTTP_204_NO_CONTENT)
async def check_in_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Organizer checks an attendee in from the attendee list."""
    await check_in(db, user_id, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
