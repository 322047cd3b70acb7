"""Domain errors raised by the booking services.

Each error carries a stable ``code`` and an HTTP ``status_code``; the API
layer renders them as ``{"error": ..., "code": ...}``.
"""

from typing import Any


class StudioError(Exception):
    status_code = 400
    code = "STUDIO_ERROR"

    def __init__(self, message: str, *, code: str | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationError(StudioError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(StudioError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDenied(StudioError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(StudioError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(StudioError):
    status_code = 409
    code = "CONFLICT"


class BookingError(StudioError):
    """Base for errors raised by the booking state machine."""


class ClassNotFound(NotFoundError, BookingError):
    code = "CLASS_NOT_FOUND"

    def __init__(self, message: str = "Class not found", **extra: Any) -> None:
        super().__init__(message, **extra)


class BookingNotFound(NotFoundError, BookingError):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, message: str = "Booking not found", **extra: Any) -> None:
        super().__init__(message, **extra)


class ClassNotAvailable(ConflictError, BookingError):
    code = "CLASS_NOT_AVAILABLE"


class ClassFull(ConflictError, BookingError):
    code = "CLASS_FULL"

    def __init__(self, message: str = "Class is full", **extra: Any) -> None:
        super().__init__(message, **extra)


class DuplicateBooking(ConflictError, BookingError):
    code = "DUPLICATE_BOOKING"

    def __init__(self, message: str = "You have already booked this class", **extra: Any) -> None:
        super().__init__(message, **extra)


class InsufficientCredits(BookingError):
    status_code = 400
    code = "INSUFFICIENT_CREDITS"


class AlreadyCancelled(BookingError):
    status_code = 400
    code = "ALREADY_CANCELLED"


class InvalidBookingStatus(BookingError):
    status_code = 400
    code = "INVALID_BOOKING_STATUS"


class WaitlistError(ConflictError):
    code = "WAITLIST_ERROR"


class RateLimitExceeded(StudioError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, *, limit: int, retry_after: int, reset_at: float) -> None:
        super().__init__("Too many requests. Please try again later.")
        self.limit = limit
        self.retry_after = retry_after
        self.reset_at = reset_at
