"""
Endpoints for out-of-process collaborators.

The payment service calls /order once it has verified a payment; the
notification workers call /notifications after a successful send; venue
staff tooling calls /check-in. All of them authenticate with the shared
X-Internal-Token header and are safe to call more than once.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.security import verify_internal_token
from event_reservations.db.session import get_db
from event_reservations.schemas.booking import AttachOrderRequest, BookingResponse, MarkNotifiedRequest
from event_reservations.services import booking_lifecycle, notification_flags

router = APIRouter(
    prefix="/internal/bookings",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_token)],
)


@router.post("/{booking_id}/order", response_model=BookingResponse)
async def attach_order(
    booking_id: uuid.UUID,
    payload: AttachOrderRequest,
    db: AsyncSession = Depends(get_db),
):
    return await booking_lifecycle.attach_order(db, booking_id, payload.order_id, payload.status)


@router.post("/{booking_id}/notifications", response_model=BookingResponse)
async def mark_notified(
    booking_id: uuid.UUID,
    payload: MarkNotifiedRequest,
    db: AsyncSession = Depends(get_db),
):
    return await notification_flags.mark_notified(db, booking_id, payload.channel)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await booking_lifecycle.mark_attended(db, booking_id)
