"""
Concurrency tests: many independent sessions racing for the same event.

Every attempt runs in its own session (its own connection), exactly as
concurrent requests would, and the final state is read back afterwards.
"""

import asyncio
import uuid

import pytest

from event_reservations.core.exceptions import AlreadyBookedError, InsufficientCapacityError
from event_reservations.services.booking_lifecycle import cancel
from event_reservations.services.booking_service import (
    BookingResult,
    get_event_booking_count,
    get_event_total_attendees,
    reserve,
)
from event_reservations.models.booking import SEAT_HOLDING_STATUSES


async def _race(session_factory, event_id, requests):
    """Run reserve() for each (user_id, seats) pair concurrently."""

    async def attempt(user_id, seats):
        async with session_factory() as session:
            return await reserve(session, user_id, event_id, seats)

    return await asyncio.gather(
        *(attempt(user_id, seats) for user_id, seats in requests),
        return_exceptions=True,
    )


def _split(results):
    successes = [r for r in results if isinstance(r, BookingResult)]
    failures = [r for r in results if not isinstance(r, BookingResult)]
    return successes, failures


@pytest.mark.asyncio
async def test_three_concurrent_reservations_of_four_seats(session_factory, test_event, spots_left):
    results = await _race(session_factory, test_event.id, [(uuid.uuid4(), 4) for _ in range(3)])

    successes, failures = _split(results)
    assert len(successes) == 2
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientCapacityError)
    assert await spots_left(test_event.id) == 2


@pytest.mark.parametrize("capacity, seats, attempts", [(10, 1, 25), (10, 3, 8), (7, 2, 10)])
@pytest.mark.asyncio
async def test_exactly_floor_capacity_over_seats_succeed(
    session_factory, db_session, make_event, spots_left, capacity, seats, attempts
):
    event = await make_event(capacity=capacity)

    results = await _race(session_factory, event.id, [(uuid.uuid4(), seats) for _ in range(attempts)])

    successes, failures = _split(results)
    assert len(successes) == capacity // seats
    assert all(isinstance(f, InsufficientCapacityError) for f in failures)
    assert sum(s.attendees for s in successes) <= capacity
    assert await spots_left(event.id) == capacity - len(successes) * seats
    assert await get_event_total_attendees(db_session, event.id, SEAT_HOLDING_STATUSES) == len(successes) * seats


@pytest.mark.asyncio
async def test_same_user_racing_gets_one_booking(session_factory, db_session, test_event, user_a, spots_left):
    results = await _race(session_factory, test_event.id, [(user_a, 2) for _ in range(5)])

    successes, failures = _split(results)
    assert len(successes) == 1
    assert all(isinstance(f, AlreadyBookedError) for f in failures)
    assert await spots_left(test_event.id) == 8
    assert await get_event_booking_count(db_session, test_event.id) == 1


@pytest.mark.asyncio
async def test_cancel_and_reserve_interleave_without_losing_seats(
    session_factory, make_event, spots_left
):
    event = await make_event(capacity=4)
    holders = [uuid.uuid4() for _ in range(4)]
    booked = await _race(session_factory, event.id, [(user_id, 1) for user_id in holders])
    assert await spots_left(event.id) == 0

    async def cancel_one(result):
        async with session_factory() as session:
            return await cancel(session, result.booking_id, result.user_id)

    newcomers = [(uuid.uuid4(), 1) for _ in range(6)]
    outcomes = await asyncio.gather(
        *(cancel_one(result) for result in booked[:2]),
        _race(session_factory, event.id, newcomers),
    )

    new_successes, _ = _split(outcomes[-1])
    # Two seats were freed; at most two newcomers can have them
    assert len(new_successes) <= 2
    assert await spots_left(event.id) == 2 - len(new_successes)


@pytest.mark.asyncio
async def test_concurrent_double_cancel_releases_once(session_factory, test_event, user_a, spots_left):
    async with session_factory() as session:
        booking = await reserve(session, user_a, test_event.id, 5)

    async def attempt():
        async with session_factory() as session:
            return await cancel(session, booking.booking_id, user_a)

    results = await asyncio.gather(attempt(), attempt(), attempt(), return_exceptions=True)

    refunds = [r for r in results if not isinstance(r, Exception)]
    assert len(refunds) == 1
    assert await spots_left(test_event.id) == 10
