"""
Event catalog operations the booking flow depends on.

Creating an event is the only place available_spots is set without the
capacity ledger: a new event starts with every spot available.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import EventNotFoundError, InvalidArgumentError
from event_reservations.core.logging import get_logger
from event_reservations.models.event import Event
from event_reservations.schemas.event import EventCreate
from event_reservations.services.transaction import unit_of_work
from event_reservations.services.validation import coerce_uuid

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new event with full availability."""
    if event_data.event_date <= datetime.now(timezone.utc):
        raise InvalidArgumentError("Event date must be in the future", field="event_date")

    async with unit_of_work(db, "create_event"):
        taken = await db.scalar(select(Event.id).where(Event.slug == event_data.slug))
        if taken is not None:
            raise InvalidArgumentError(f"Slug '{event_data.slug}' is already in use", field="slug")

        event = Event(
            slug=event_data.slug,
            title=event_data.title,
            description=event_data.description,
            venue_name=event_data.venue_name,
            event_date=event_data.event_date,
            price=event_data.price,
            capacity=event_data.capacity,
            available_spots=event_data.capacity,  # All spots available initially
            is_published=event_data.is_published,
        )
        db.add(event)

    logger.info("event_created", event_id=str(event.id), slug=event.slug, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: Any) -> Event:
    """Get a single event by ID, always re-read from the database."""
    event_id = coerce_uuid(event_id, "event_id")

    async with unit_of_work(db, "get_event"):
        result = await db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()

    if event is None:
        raise EventNotFoundError(event_id)
    return event


async def get_event_by_slug(db: AsyncSession, slug: str) -> Event:
    async with unit_of_work(db, "get_event_by_slug"):
        result = await db.execute(
            select(Event).where(Event.slug == slug).execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()

    if event is None:
        raise EventNotFoundError(slug)
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
    published_only: bool = True,
) -> tuple[list[Event], int]:
    """
    List events with pagination.
    Uses the ix_events_published_date index for the common published/upcoming filter.
    """
    query = select(Event)

    if published_only:
        query = query.where(Event.is_published.is_(True))
    if upcoming_only:
        query = query.where(Event.event_date >= datetime.now(timezone.utc))

    async with unit_of_work(db, "list_events"):
        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar()

        events_query = (
            query
            .order_by(Event.event_date.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(events_query)
        events = list(result.scalars().all())

    return events, total
