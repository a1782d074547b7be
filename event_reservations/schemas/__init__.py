from event_reservations.schemas.event import (
    CapacityResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatsResponse,
)
from event_reservations.schemas.booking import (
    AttachOrderRequest,
    BookingCreate,
    BookingResponse,
    BookingResultResponse,
    MarkNotifiedRequest,
    RefundResponse,
)

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse", "CapacityResponse", "EventStatsResponse",
    "BookingCreate", "BookingResponse", "BookingResultResponse", "RefundResponse",
    "AttachOrderRequest", "MarkNotifiedRequest",
]
