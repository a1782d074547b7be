"""
Booking endpoints backed by the reservation engine.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.config import get_settings
from event_reservations.core.exceptions import ForbiddenError, InvalidArgumentError
from event_reservations.core.security import Principal, get_current_principal, get_current_user_id
from event_reservations.db.session import get_db
from event_reservations.models.booking import BookingStatus
from event_reservations.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingResultResponse,
    RefundResponse,
)
from event_reservations.services import booking_lifecycle, booking_service
from event_reservations.services.cache_service import invalidate_listing_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResultResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve seats for an event. The booking starts out pending until the
    payment collaborator confirms it.

    409 distinguishes ALREADY_BOOKED, INSUFFICIENT_CAPACITY and NOT_BOOKABLE
    through `error_code`; 503 means the event was busy and the request can be
    retried.
    """
    max_attendees = get_settings().MAX_ATTENDEES_PER_BOOKING
    if booking_data.attendees > max_attendees:
        raise InvalidArgumentError(f"Maximum {max_attendees} attendees per booking", field="attendees")

    result = await booking_service.reserve(db, user_id, booking_data.event_id, booking_data.attendees)
    await invalidate_listing_cache()
    return result


@router.get("/", response_model=list[BookingResponse])
async def list_my_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's bookings, newest first."""
    return await booking_service.list_user_bookings(db, user_id, booking_status, limit, offset)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id)
    if booking.user_id != principal.user_id and not principal.is_admin:
        raise ForbiddenError("You do not have permission to view this booking")
    return booking


@router.delete("/{booking_id}", response_model=RefundResponse)
async def cancel_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats back to the event."""
    refund = await booking_lifecycle.cancel(
        db, booking_id, principal.user_id, is_admin=principal.is_admin
    )
    await invalidate_listing_cache()
    return RefundResponse(
        message="Booking cancelled successfully",
        booking_id=refund.booking_id,
        refunded_spots=refund.refunded_spots,
    )
