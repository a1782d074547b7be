"""
Event endpoints with Redis caching on the public listing.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.logging import get_logger
from event_reservations.core.security import get_current_user_id
from event_reservations.db.session import get_db
from event_reservations.models.booking import SEAT_HOLDING_STATUSES
from event_reservations.schemas.event import (
    CapacityResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatsResponse,
)
from event_reservations.services import booking_service, capacity_ledger, event_service
from event_reservations.services.cache_service import (
    get_cached_listing,
    invalidate_listing_cache,
    set_cached_listing,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Requires authentication."""
    event = await event_service.create_event(db, event_data)
    await invalidate_listing_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List published events with pagination.
    Cached in Redis; reservations and cancellations invalidate the cache.
    """
    cached = await get_cached_listing(page, page_size, upcoming_only)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await event_service.list_events(db, page, page_size, upcoming_only)
    response_data = {
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_listing(page, page_size, upcoming_only, response_data)
    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (shows live availability)."""
    return await event_service.get_event(db, event_id)


@router.get("/{event_id}/capacity", response_model=CapacityResponse)
async def check_capacity(
    event_id: uuid.UUID,
    spots: int = Query(1),
    db: AsyncSession = Depends(get_db),
):
    """Advisory availability check; the booking itself re-checks under a lock."""
    check = await capacity_ledger.check_capacity(db, event_id, spots)
    return CapacityResponse(
        event_id=event_id,
        requested_spots=spots,
        available=check.available,
        available_spots=check.available_spots,
        capacity=check.capacity,
    )


@router.get("/{event_id}/stats", response_model=EventStatsResponse)
async def event_stats(
    event_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_event(db, event_id)
    booking_count = await booking_service.get_event_booking_count(db, event_id)
    active_attendees = await booking_service.get_event_total_attendees(db, event_id, SEAT_HOLDING_STATUSES)
    return EventStatsResponse(
        event_id=event.id,
        capacity=event.capacity,
        available_spots=event.available_spots,
        booking_count=booking_count,
        active_attendees=active_attendees,
    )
