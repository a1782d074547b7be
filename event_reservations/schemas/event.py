"""
Pydantic schemas for event-related request/response validation.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class EventCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    venue_name: Optional[str] = Field(None, max_length=255)
    event_date: datetime
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    capacity: int = Field(..., ge=0, le=100000)
    is_published: bool = True

    @field_validator("event_date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class EventResponse(BaseModel):
    id: uuid.UUID
    slug: str
    title: str
    description: Optional[str]
    venue_name: Optional[str]
    event_date: datetime
    price: Decimal
    capacity: int
    available_spots: int
    is_published: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class CapacityResponse(BaseModel):
    event_id: uuid.UUID
    requested_spots: int
    available: bool
    available_spots: int
    capacity: int


class EventStatsResponse(BaseModel):
    event_id: uuid.UUID
    capacity: int
    available_spots: int
    booking_count: int
    active_attendees: int
