"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class BookingCreate(BaseModel):
    event_id: int


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    status: str
    booked_at: datetime
    points_earned: int
    is_checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    check_in_token: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str


class BulkCancelResponse(BaseModel):
    message: str
    event_id: int
    booking_ids: list[int]


class CheckInInfoResponse(BaseModel):
    booking_id: int
    user_id: int
    attendee_name: str
    event_title: str
    is_checked_in: bool
    checked_in_at: Optional[datetime]
