"""
Input coercion shared by the service entry points.
"""

import uuid
from typing import Any

from event_reservations.core.exceptions import InvalidArgumentError
from event_reservations.models.booking import BookingStatus


def coerce_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentError(f"{field} is required", field=field)
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidArgumentError(f"{field} must be a valid UUID", field=field)


def coerce_positive_int(value: Any, field: str) -> int:
    # bool is an int subclass; True is not "1 attendee"
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{field} must be an integer", field=field)
    if value < 1:
        raise InvalidArgumentError(f"{field} must be at least 1", field=field)
    return value


def coerce_status(value: Any, field: str = "status") -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Invalid booking status: {value!r}", field=field)
