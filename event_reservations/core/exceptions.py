"""
Typed error taxonomy for the reservation engine.

Business outcomes ("sold out", "already booked") and infrastructure faults
("database unreachable") are separate classes so callers can branch on the
kind of failure instead of matching message strings. Only BusyError is safe
to retry without changing the request.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    NOT_BOOKABLE = "NOT_BOOKABLE"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    FORBIDDEN = "FORBIDDEN"
    BUSY = "BUSY"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class ReservationError(Exception):
    """Base class for every error raised by the reservation services."""

    http_status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STORAGE_FAILURE,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidArgumentError(ReservationError):
    """Malformed or missing input. Never retried automatically."""

    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_ARGUMENT,
            details={"field": field} if field else None,
        )


class NotFoundError(ReservationError):
    http_status = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        super().__init__(
            f"{resource_type.capitalize()} not found",
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
            if resource_id is not None
            else {"resource_type": resource_type},
        )


class EventNotFoundError(NotFoundError):
    def __init__(self, event_id: Any = None):
        super().__init__("event", event_id)


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: Any = None):
        super().__init__("booking", booking_id)


class InvalidStateError(ReservationError):
    """Operation is not legal for the current lifecycle state."""

    http_status = 409

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_STATE,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, details=details)


class EventNotBookableError(InvalidStateError):
    """Event is unpublished or already in the past.

    Both cases share one error code so end users see a single
    "not available for booking" outcome.
    """

    def __init__(self, message: str, event_id: Any = None):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_BOOKABLE,
            details={"event_id": str(event_id)} if event_id is not None else None,
        )


class AlreadyBookedError(ReservationError):
    http_status = 409

    def __init__(self, event_id: Any = None):
        super().__init__(
            "You already have a booking for this event",
            error_code=ErrorCode.ALREADY_BOOKED,
            details={"event_id": str(event_id)} if event_id is not None else None,
        )


class InsufficientCapacityError(ReservationError):
    http_status = 409

    def __init__(self, requested: int, available: int, event_id: Any = None):
        super().__init__(
            f"Insufficient capacity. Only {available} spot(s) available",
            error_code=ErrorCode.INSUFFICIENT_CAPACITY,
            details={
                "requested": requested,
                "available": available,
                "event_id": str(event_id) if event_id is not None else None,
            },
        )
        self.requested = requested
        self.available = available


class ForbiddenError(ReservationError):
    http_status = 403

    def __init__(self, message: str = "You do not have permission to modify this booking"):
        super().__init__(message, error_code=ErrorCode.FORBIDDEN)


class BusyError(ReservationError):
    """Lock wait exceeded its bound. Safe to retry as-is."""

    http_status = 503
    retryable = True

    def __init__(self, message: str = "The event is busy, please retry", retry_after: int = 1):
        super().__init__(
            message,
            error_code=ErrorCode.BUSY,
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


class StorageFailureError(ReservationError):
    """Unexpected persistence error. The message shown to callers is generic."""

    http_status = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message, error_code=ErrorCode.STORAGE_FAILURE)
