"""Domain error codes for the booking workflow."""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Expected, user-facing outcomes of a rejected operation."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    TOO_LATE = "TOO_LATE"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    code = ErrorCode.NOT_FOUND


class EventNotFoundError(NotFoundError):
    """Raised when an event is not found."""

    def __init__(self, event_id: int) -> None:
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class BookingNotFoundError(NotFoundError):
    """Raised when a booking is missing or belongs to someone else."""

    def __init__(self, booking_id: Optional[int], message: str = "Booking not found") -> None:
        super().__init__(message)
        self.booking_id = booking_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class WaitlistEntryNotFoundError(NotFoundError):
    def __init__(self, event_id: int) -> None:
        super().__init__("You are not on the waitlist for this event")
        self.event_id = event_id


class InvalidStateError(DomainError):
    code = ErrorCode.INVALID_STATE


class CapacityExceededError(DomainError):
    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, event_id: int) -> None:
        super().__init__("Event is fully booked")
        self.event_id = event_id


class TooLateError(DomainError):
    code = ErrorCode.TOO_LATE

    def __init__(self, days: int) -> None:
        super().__init__(f"Bookings can only be cancelled more than {days} days before the event")


class ConflictError(DomainError):
    code = ErrorCode.CONFLICT


class ForbiddenError(DomainError):
    """Raised when the caller is not allowed to act on the resource."""

    code = ErrorCode.FORBIDDEN
