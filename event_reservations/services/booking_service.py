"""
Booking service: reservation entry point and booking queries.

A reservation is one unit of work:

  1. lock the event row (capacity ledger)
  2. reject unpublished or past events
  3. reject a second active booking by the same user (duplicate guard)
  4. reject if available_spots < attendees
  5. insert the booking as pending with its price frozen
  6. decrement available_spots
  7. commit

Any failure after step 1 rolls the whole transaction back; nothing a failed
reservation did is ever visible. Payment happens later and out-of-process;
the payment collaborator confirms the booking through attach_order() without
re-entering this path.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import (
    AlreadyBookedError,
    BookingNotFoundError,
    EventNotBookableError,
    InsufficientCapacityError,
    InvalidArgumentError,
    ReservationError,
)
from event_reservations.core.logging import get_logger
from event_reservations.core.metrics import record_reservation, reservation_latency
from event_reservations.models.booking import Booking, BookingStatus
from event_reservations.services.booking_guard import ensure_not_booked
from event_reservations.services.booking_lifecycle import validate_order, apply_order
from event_reservations.services.capacity_ledger import decrement, lock_event
from event_reservations.services.transaction import unit_of_work
from event_reservations.services.validation import coerce_positive_int, coerce_status, coerce_uuid

logger = get_logger(__name__)

DEFAULT_ATTENDEE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass(frozen=True)
class BookingResult:
    booking_id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    attendees: int
    total_price: Decimal
    status: str


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _reserve_locked(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    attendees: int,
) -> Booking:
    """Reservation steps; the caller owns the transaction."""
    event = await lock_event(db, event_id)

    if not event.is_published:
        raise EventNotBookableError("Event is not available for booking", event_id)

    if _as_utc(event.event_date) < datetime.now(timezone.utc):
        raise EventNotBookableError("Cannot book past events", event_id)

    await ensure_not_booked(db, user_id, event_id)

    if event.available_spots < attendees:
        raise InsufficientCapacityError(
            requested=attendees,
            available=event.available_spots,
            event_id=event_id,
        )

    booking = Booking(
        user_id=user_id,
        event_id=event_id,
        attendees=attendees,
        total_price=event.price * attendees,
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)
    # Surface a unique-index race here, before capacity is touched
    await db.flush()

    await decrement(db, event_id, attendees)
    return booking


async def _run_reservation(db: AsyncSession, user_id, event_id, attendees, order=None) -> Booking:
    try:
        with reservation_latency.time():
            async with unit_of_work(db, "reserve", user_id=user_id, event_id=event_id):
                booking = await _reserve_locked(db, user_id, event_id, attendees)
                if order is not None:
                    apply_order(booking, *order)
    except ReservationError as exc:
        record_reservation(exc.error_code.value.lower())
        logger.info(
            "reservation_rejected",
            user_id=str(user_id),
            event_id=str(event_id),
            attendees=attendees,
            reason=exc.error_code.value,
        )
        if isinstance(exc, AlreadyBookedError) and "event_id" not in exc.details:
            # Index backstop: report it exactly like the application check
            raise AlreadyBookedError(event_id) from exc.__cause__
        raise

    record_reservation("success")
    logger.info(
        "booking_reserved",
        booking_id=str(booking.id),
        user_id=str(user_id),
        event_id=str(event_id),
        attendees=attendees,
        total_price=str(booking.total_price),
        status=booking.status,
    )
    return booking


async def reserve(db: AsyncSession, user_id: Any, event_id: Any, attendees: Any = 1) -> BookingResult:
    """
    Reserve `attendees` seats for a user. Returns the pending booking.

    Raises InvalidArgumentError, EventNotFoundError, EventNotBookableError,
    AlreadyBookedError, InsufficientCapacityError, BusyError or
    StorageFailureError.
    """
    user_id = coerce_uuid(user_id, "user_id")
    event_id = coerce_uuid(event_id, "event_id")
    attendees = coerce_positive_int(attendees, "attendees")

    booking = await _run_reservation(db, user_id, event_id, attendees)
    return BookingResult(
        booking_id=booking.id,
        event_id=booking.event_id,
        user_id=booking.user_id,
        attendees=booking.attendees,
        total_price=Decimal(booking.total_price),
        status=booking.status,
    )


async def create_booking(
    db: AsyncSession,
    user_id: Any,
    event_id: Any,
    attendees: Any = 1,
    *,
    order_id: Optional[str] = None,
    status: Any = BookingStatus.PENDING,
) -> Booking:
    """
    Reserve and, in the same transaction, link an order reference the caller
    already holds (checkout flows that create the order first).
    """
    user_id = coerce_uuid(user_id, "user_id")
    event_id = coerce_uuid(event_id, "event_id")
    attendees = coerce_positive_int(attendees, "attendees")

    order = None
    if order_id is not None:
        order = validate_order(order_id, status)
    elif coerce_status(status) is not BookingStatus.PENDING:
        raise InvalidArgumentError("A booking can only be confirmed through an order", field="status")

    return await _run_reservation(db, user_id, event_id, attendees, order)


async def get_booking(db: AsyncSession, booking_id: Any) -> Booking:
    booking_id = coerce_uuid(booking_id, "booking_id")

    async with unit_of_work(db, "get_booking"):
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()

    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


async def list_user_bookings(
    db: AsyncSession,
    user_id: Any,
    status: Optional[Any] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Booking]:
    """Get a user's bookings, newest first."""
    user_id = coerce_uuid(user_id, "user_id")

    query = select(Booking).where(Booking.user_id == user_id)
    if status is not None:
        query = query.where(Booking.status == coerce_status(status).value)

    async with unit_of_work(db, "list_user_bookings"):
        result = await db.execute(
            query.order_by(Booking.created_at.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        bookings = list(result.scalars().all())
    return bookings


async def get_event_booking_count(db: AsyncSession, event_id: Any, status: Optional[Any] = None) -> int:
    """Count bookings for an event, optionally of one status."""
    event_id = coerce_uuid(event_id, "event_id")

    query = select(func.count()).select_from(Booking).where(Booking.event_id == event_id)
    if status is not None:
        query = query.where(Booking.status == coerce_status(status).value)

    async with unit_of_work(db, "get_event_booking_count"):
        count = await db.scalar(query)
    return int(count or 0)


async def get_event_total_attendees(
    db: AsyncSession,
    event_id: Any,
    statuses: Iterable[Any] = DEFAULT_ATTENDEE_STATUSES,
) -> int:
    """Sum attendees over an event's bookings in the given statuses."""
    event_id = coerce_uuid(event_id, "event_id")
    status_values = [coerce_status(s, "statuses").value for s in statuses]
    if not status_values:
        return 0

    async with unit_of_work(db, "get_event_total_attendees"):
        total = await db.scalar(
            select(func.coalesce(func.sum(Booking.attendees), 0)).where(
                Booking.event_id == event_id,
                Booking.status.in_(status_values),
            )
        )
    return int(total or 0)
