"""
Booking lifecycle state machine, cancellation and order linkage.

    pending ──> confirmed ──> attended
       │            │
       └──> cancelled <┘

cancelled and attended are terminal. Only cancellation has a capacity
effect: it returns the booking's attendees to the event exactly once.

LOCK ORDER: whenever one transaction needs both rows, the event row is locked
before the booking row. Reservation locks the event and then inserts the
booking; cancellation peeks at the booking's event_id without a lock, locks
the event, and only then locks the booking. With one global order, a
concurrent reserve and cancel on the same event cannot deadlock.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import (
    BookingNotFoundError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
)
from event_reservations.core.logging import get_logger
from event_reservations.core.metrics import record_cancellation, record_transition
from event_reservations.models.booking import Booking, BookingStatus
from event_reservations.services.capacity_ledger import increment, lock_event
from event_reservations.services.transaction import unit_of_work
from event_reservations.services.validation import coerce_status, coerce_uuid

logger = get_logger(__name__)

TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ATTENDED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.ATTENDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Statuses an order reference may leave a booking in
ORDER_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class RefundResult:
    booking_id: uuid.UUID
    event_id: uuid.UUID
    refunded_spots: int


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    current, target = BookingStatus(current), BookingStatus(target)
    if current is BookingStatus.CANCELLED:
        raise InvalidStateError("Booking is already cancelled", details={"status": current.value})
    if current is BookingStatus.ATTENDED:
        raise InvalidStateError(
            f"Cannot change an attended booking to {target.value}",
            details={"status": current.value},
        )
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot change a {current.value} booking to {target.value}",
            details={"status": current.value, "target": target.value},
        )


def _set_status(booking: Booking, target: BookingStatus) -> None:
    current = BookingStatus(booking.status)
    ensure_transition(current, target)
    booking.status = target.value
    record_transition(current.value, target.value)


async def lock_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


async def cancel(
    db: AsyncSession,
    booking_id: Any,
    requesting_user_id: Any,
    *,
    is_admin: bool = False,
) -> RefundResult:
    """
    Cancel a booking and release its attendees back to the event.

    Cancelling an already-cancelled or attended booking raises
    InvalidStateError and leaves capacity untouched, so a retried cancel can
    never release the same seats twice.
    """
    booking_id = coerce_uuid(booking_id, "booking_id")
    requesting_user_id = coerce_uuid(requesting_user_id, "user_id")

    async with unit_of_work(db, "cancel", booking_id=booking_id):
        event_id = await db.scalar(select(Booking.event_id).where(Booking.id == booking_id))
        if event_id is None:
            raise BookingNotFoundError(booking_id)

        await lock_event(db, event_id)
        booking = await lock_booking(db, booking_id)

        if booking.user_id != requesting_user_id and not is_admin:
            logger.warning(
                "cancel_forbidden",
                booking_id=str(booking_id),
                requesting_user_id=str(requesting_user_id),
            )
            raise ForbiddenError()

        if booking.status == BookingStatus.ATTENDED.value:
            raise InvalidStateError("Cannot cancel an attended booking", details={"status": booking.status})

        _set_status(booking, BookingStatus.CANCELLED)
        await db.flush()
        await increment(db, event_id, booking.attendees)

    record_cancellation(booking.attendees)
    logger.info(
        "booking_cancelled",
        booking_id=str(booking.id),
        user_id=str(booking.user_id),
        event_id=str(event_id),
        spots_released=booking.attendees,
        by_admin=is_admin and booking.user_id != requesting_user_id,
    )
    return RefundResult(booking_id=booking.id, event_id=event_id, refunded_spots=booking.attendees)


async def mark_attended(db: AsyncSession, booking_id: Any) -> Booking:
    """Check-in: confirmed -> attended. No capacity effect."""
    booking_id = coerce_uuid(booking_id, "booking_id")

    async with unit_of_work(db, "mark_attended"):
        booking = await lock_booking(db, booking_id)
        _set_status(booking, BookingStatus.ATTENDED)

    logger.info("booking_attended", booking_id=str(booking.id), event_id=str(booking.event_id))
    return booking


def apply_order(booking: Booking, order_id: str, target: BookingStatus) -> bool:
    """
    Link an order to a locked booking. Returns False when the booking already
    carries this order in this status (a redelivered payment webhook).
    """
    if booking.order_id == order_id and booking.status == target.value:
        return False

    if booking.order_id is not None and booking.order_id != order_id:
        raise InvalidStateError(
            "Booking is already linked to a different order",
            details={"order_id": booking.order_id},
        )

    if booking.status != target.value:
        _set_status(booking, target)
    booking.order_id = order_id
    return True


def validate_order(order_id: Any, status: Any) -> tuple:
    if not isinstance(order_id, str) or not order_id.strip():
        raise InvalidArgumentError("order_id is required", field="order_id")
    target = coerce_status(status)
    if target not in ORDER_STATUSES:
        raise InvalidArgumentError(
            "An order can only leave a booking pending or confirmed",
            field="status",
        )
    return order_id.strip(), target


async def attach_order(
    db: AsyncSession,
    booking_id: Any,
    order_id: str,
    status: Any = BookingStatus.CONFIRMED,
) -> Booking:
    """
    Called by the payment collaborator once it has verified payment.

    Pure metadata update: the seats were taken at reservation time, so the
    capacity ledger is not involved. Repeating a call with the same order id
    and status succeeds without changing anything.
    """
    booking_id = coerce_uuid(booking_id, "booking_id")
    order_id, target = validate_order(order_id, status)

    async with unit_of_work(db, "attach_order", booking_id=booking_id):
        booking = await lock_booking(db, booking_id)
        changed = apply_order(booking, order_id, target)

    if changed:
        logger.info(
            "order_attached",
            booking_id=str(booking.id),
            order_id=order_id,
            status=booking.status,
        )
    else:
        logger.info("order_attach_noop", booking_id=str(booking.id), order_id=order_id)
    return booking


async def update_booking_status(
    db: AsyncSession,
    booking_id: Any,
    new_status: Any,
    *,
    actor_user_id: Optional[Any] = None,
    is_admin: bool = True,
) -> Booking:
    """
    Administrative status change. Cancellation always goes through cancel()
    so the seats are released by the ledger.
    """
    booking_id = coerce_uuid(booking_id, "booking_id")
    target = coerce_status(new_status, "new_status")

    if target is BookingStatus.CANCELLED:
        actor = actor_user_id if actor_user_id is not None else uuid.UUID(int=0)
        await cancel(db, booking_id, actor, is_admin=is_admin)
        return await _reload(db, booking_id)

    if target is BookingStatus.ATTENDED:
        return await mark_attended(db, booking_id)

    async with unit_of_work(db, "update_booking_status"):
        booking = await lock_booking(db, booking_id)
        if booking.status != target.value:
            _set_status(booking, target)

    logger.info("booking_status_updated", booking_id=str(booking.id), status=booking.status)
    return booking


async def _reload(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    async with unit_of_work(db, "get_booking"):
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking
