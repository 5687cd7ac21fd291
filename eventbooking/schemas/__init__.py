from eventbooking.schemas.user import UserResponse
from eventbooking.schemas.event import EventCreate, EventResponse, EventListResponse
from eventbooking.schemas.booking import BookingCreate, BookingResponse, BookingCancelResponse, BulkCancelResponse, CheckInInfoResponse
from eventbooking.schemas.waitlist import WaitlistPositionResponse, WaitlistEntryResponse

__all__ = [
    "UserResponse",
    "EventCreate", "EventResponse", "EventListResponse",
    "BookingCreate", "BookingResponse", "BookingCancelResponse", "BulkCancelResponse", "CheckInInfoResponse",
    "WaitlistPositionResponse", "WaitlistEntryResponse",
]
