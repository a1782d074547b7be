"""
Duplicate-booking guard.

Two layers stop a user from holding two active bookings for one event:

1. An application check inside the reservation transaction, after the event
   row is locked, rejects the request before capacity is touched.
2. The partial unique index on (user_id, event_id) catches the race where two
   transactions both pass the check. The unit of work maps that violation to
   the same AlreadyBookedError, so callers see one outcome either way.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import AlreadyBookedError
from event_reservations.core.logging import get_logger
from event_reservations.models.booking import ACTIVE_BOOKING_INDEX, Booking, BookingStatus

logger = get_logger(__name__)

# SQLite reports the columns instead of the index name
_SQLITE_ACTIVE_BOOKING_MESSAGE = "UNIQUE constraint failed: bookings.user_id, bookings.event_id"


async def find_active_booking(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.user_id == user_id,
            Booking.event_id == event_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return result.scalars().first()


async def ensure_not_booked(db: AsyncSession, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
    existing = await find_active_booking(db, user_id, event_id)
    if existing is not None:
        logger.info(
            "duplicate_booking_rejected",
            user_id=str(user_id),
            event_id=str(event_id),
            existing_booking_id=str(existing.id),
        )
        raise AlreadyBookedError(event_id)


def is_active_booking_conflict(exc: IntegrityError) -> bool:
    """True when the violation came from the one-active-booking index."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return ACTIVE_BOOKING_INDEX in message or _SQLITE_ACTIVE_BOOKING_MESSAGE in message
