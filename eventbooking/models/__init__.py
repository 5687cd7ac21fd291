from eventbooking.models.user import User
from eventbooking.models.event import Event, EventStatus
from eventbooking.models.booking import Booking, BookingStatus
from eventbooking.models.waitlist import WaitlistEntry
from eventbooking.models.notification import Notification

__all__ = [
    "User", "Event", "EventStatus", "Booking", "BookingStatus",
    "WaitlistEntry", "Notification",
]
