"""
Capacity ledger: the only writer of events.available_spots.

CONCURRENCY STRATEGY: Pessimistic row lock
==========================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_spots=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  The reservation transaction locks the event row first:

    SELECT ... FROM events WHERE id = :event_id FOR UPDATE

  Every decision about available_spots is made on the value read under that
  lock, and the write happens before the lock is released at commit. A second
  transaction on the same event blocks at the SELECT until the first commits,
  then reads the updated value. Events never contend with each other.

  Lock waits are bounded (lock_timeout on PostgreSQL, busy timeout on SQLite);
  an expired wait surfaces as BusyError, which callers may retry.

  The DB CHECK constraints (0 <= available_spots <= capacity) remain the
  final safety net, and decrement() re-checks the bound in its WHERE clause.

Why not optimistic locking:
  Bookings are short, correctness-critical transactions. Under a burst on one
  event (a popular drop), a version-check/retry loop turns into a retry storm,
  while a row lock simply queues the requests.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import EventNotFoundError, InsufficientCapacityError, InvalidArgumentError
from event_reservations.core.logging import get_logger
from event_reservations.db.base import utcnow
from event_reservations.models.event import Event
from event_reservations.services.transaction import unit_of_work
from event_reservations.services.validation import coerce_positive_int, coerce_uuid

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventSnapshot:
    """Event fields read under the row lock."""

    id: uuid.UUID
    capacity: int
    available_spots: int
    is_published: bool
    event_date: datetime
    price: Decimal


@dataclass(frozen=True)
class CapacityCheck:
    available: bool
    available_spots: int
    capacity: int


async def lock_event(db: AsyncSession, event_id: uuid.UUID) -> EventSnapshot:
    """
    Lock the event row for the rest of the caller's transaction.
    Must run before any read of available_spots that feeds a decision.
    """
    result = await db.execute(
        select(
            Event.id,
            Event.capacity,
            Event.available_spots,
            Event.is_published,
            Event.event_date,
            Event.price,
        )
        .where(Event.id == event_id)
        .with_for_update()
    )
    row = result.one_or_none()
    if row is None:
        raise EventNotFoundError(event_id)

    return EventSnapshot(
        id=row.id,
        capacity=row.capacity,
        available_spots=row.available_spots,
        is_published=row.is_published,
        event_date=row.event_date,
        price=Decimal(row.price),
    )


async def decrement(db: AsyncSession, event_id: uuid.UUID, spots: int) -> None:
    """
    Take `spots` seats. The caller holds the event lock and has already
    checked availability; the guarded WHERE clause re-checks it anyway.
    """
    if spots < 1:
        raise InvalidArgumentError("Spots to reserve must be at least 1", field="spots")

    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.available_spots >= spots)
        .values(available_spots=Event.available_spots - spots, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        current = await db.scalar(select(Event.available_spots).where(Event.id == event_id))
        if current is None:
            raise EventNotFoundError(event_id)
        logger.error(
            "capacity_decrement_rejected",
            event_id=str(event_id),
            requested=spots,
            available=current,
        )
        raise InsufficientCapacityError(requested=spots, available=current, event_id=event_id)


async def increment(db: AsyncSession, event_id: uuid.UUID, spots: int) -> None:
    """Return `spots` seats, never going above capacity."""
    if spots < 1:
        raise InvalidArgumentError("Spots to release must be at least 1", field="spots")

    snapshot = await lock_event(db, event_id)
    if snapshot.available_spots + spots > snapshot.capacity:
        # Bookkeeping drift: more seats released than were ever taken
        logger.warning(
            "capacity_release_clipped",
            event_id=str(event_id),
            released=spots,
            available=snapshot.available_spots,
            capacity=snapshot.capacity,
        )

    restored = Event.available_spots + spots
    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(
            available_spots=case((restored > Event.capacity, Event.capacity), else_=restored),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )


async def check_capacity(db: AsyncSession, event_id: Any, requested_spots: Any) -> CapacityCheck:
    """
    Advisory availability answer for display purposes.
    The reservation path never relies on this; it re-reads under the lock.
    """
    event_id = coerce_uuid(event_id, "event_id")
    requested_spots = coerce_positive_int(requested_spots, "requested_spots")

    async with unit_of_work(db, "check_capacity"):
        result = await db.execute(
            select(Event.available_spots, Event.capacity).where(Event.id == event_id)
        )
        row = result.one_or_none()
        if row is None:
            raise EventNotFoundError(event_id)

    return CapacityCheck(
        available=row.available_spots >= requested_spots,
        available_spots=row.available_spots,
        capacity=row.capacity,
    )
