from eventbooking.domain.errors import (
    DomainError,
    ErrorCode,
    NotFoundError,
    EventNotFoundError,
    BookingNotFoundError,
    UserNotFoundError,
    WaitlistEntryNotFoundError,
    InvalidStateError,
    CapacityExceededError,
    TooLateError,
    ConflictError,
    ForbiddenError,
)

__all__ = [
    "DomainError", "ErrorCode", "NotFoundError",
    "EventNotFoundError", "BookingNotFoundError", "UserNotFoundError", "WaitlistEntryNotFoundError",
    "InvalidStateError", "CapacityExceededError", "TooLateError", "ConflictError",
    "ForbiddenError",
]
