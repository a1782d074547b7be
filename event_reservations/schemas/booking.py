"""
Pydantic schemas for booking-related request/response validation.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from event_reservations.models.booking import BookingStatus, NotificationChannel


class BookingCreate(BaseModel):
    event_id: uuid.UUID
    # Upper bound is enforced against MAX_ATTENDEES_PER_BOOKING in the route
    attendees: int = Field(default=1, gt=0)


class BookingResultResponse(BaseModel):
    booking_id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    attendees: int
    total_price: Decimal
    status: str

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_id: uuid.UUID
    order_id: Optional[str]
    status: str
    attendees: int
    total_price: Decimal
    email_notified: bool
    whatsapp_notified: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RefundResponse(BaseModel):
    message: str
    booking_id: uuid.UUID
    refunded_spots: int


class AttachOrderRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=255)
    status: BookingStatus = BookingStatus.CONFIRMED


class MarkNotifiedRequest(BaseModel):
    channel: NotificationChannel
