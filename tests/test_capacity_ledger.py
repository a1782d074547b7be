"""
Tests for the capacity ledger primitives.
"""

import uuid

import pytest

from event_reservations.core.exceptions import (
    EventNotFoundError,
    InsufficientCapacityError,
    InvalidArgumentError,
)
from event_reservations.services.capacity_ledger import (
    check_capacity,
    decrement,
    increment,
    lock_event,
)
from event_reservations.services.transaction import unit_of_work


@pytest.mark.asyncio
async def test_lock_event_returns_snapshot(db_session, test_event):
    async with unit_of_work(db_session, "test"):
        snapshot = await lock_event(db_session, test_event.id)

    assert snapshot.id == test_event.id
    assert snapshot.capacity == 10
    assert snapshot.available_spots == 10
    assert snapshot.is_published is True


@pytest.mark.asyncio
async def test_lock_event_unknown(db_session):
    with pytest.raises(EventNotFoundError):
        async with unit_of_work(db_session, "test"):
            await lock_event(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_decrement_takes_seats(db_session, test_event, spots_left):
    async with unit_of_work(db_session, "test"):
        await decrement(db_session, test_event.id, 4)

    assert await spots_left(test_event.id) == 6


@pytest.mark.asyncio
async def test_decrement_refuses_to_go_negative(db_session, make_event, spots_left):
    event = await make_event(capacity=10, available_spots=3)

    with pytest.raises(InsufficientCapacityError) as exc_info:
        async with unit_of_work(db_session, "test"):
            await decrement(db_session, event.id, 4)

    assert exc_info.value.available == 3
    assert exc_info.value.requested == 4
    assert await spots_left(event.id) == 3


@pytest.mark.asyncio
async def test_decrement_unknown_event(db_session):
    with pytest.raises(EventNotFoundError):
        async with unit_of_work(db_session, "test"):
            await decrement(db_session, uuid.uuid4(), 1)


@pytest.mark.asyncio
async def test_increment_returns_seats(db_session, make_event, spots_left):
    event = await make_event(capacity=10, available_spots=2)

    async with unit_of_work(db_session, "test"):
        await increment(db_session, event.id, 5)

    assert await spots_left(event.id) == 7


@pytest.mark.asyncio
async def test_increment_is_capped_at_capacity(db_session, make_event, spots_left):
    event = await make_event(capacity=10, available_spots=8)

    async with unit_of_work(db_session, "test"):
        await increment(db_session, event.id, 5)

    assert await spots_left(event.id) == 10


@pytest.mark.parametrize("operation", [decrement, increment])
@pytest.mark.asyncio
async def test_non_positive_spots_rejected(db_session, test_event, spots_left, operation):
    with pytest.raises(InvalidArgumentError):
        async with unit_of_work(db_session, "test"):
            await operation(db_session, test_event.id, 0)

    assert await spots_left(test_event.id) == 10


@pytest.mark.asyncio
async def test_check_capacity(db_session, make_event):
    event = await make_event(capacity=10, available_spots=3)

    fits = await check_capacity(db_session, event.id, 3)
    assert fits.available is True
    assert fits.available_spots == 3
    assert fits.capacity == 10

    too_many = await check_capacity(db_session, event.id, 4)
    assert too_many.available is False


@pytest.mark.asyncio
async def test_check_capacity_accepts_string_id(db_session, make_event):
    event = await make_event(capacity=10, available_spots=3)

    check = await check_capacity(db_session, str(event.id), 3)

    assert check.available is True
    assert check.available_spots == 3


@pytest.mark.parametrize(
    "event_id, spots, field",
    [
        ("not-a-uuid", 1, "event_id"),
        ("", 1, "event_id"),
        (None, 1, "event_id"),
        (uuid.uuid4(), 0, "requested_spots"),
        (uuid.uuid4(), "2", "requested_spots"),
        (uuid.uuid4(), True, "requested_spots"),
    ],
)
@pytest.mark.asyncio
async def test_check_capacity_invalid_request(db_session, event_id, spots, field):
    with pytest.raises(InvalidArgumentError) as exc_info:
        await check_capacity(db_session, event_id, spots)
    assert exc_info.value.details["field"] == field


@pytest.mark.asyncio
async def test_check_capacity_unknown_event(db_session):
    with pytest.raises(EventNotFoundError):
        await check_capacity(db_session, uuid.uuid4(), 1)
