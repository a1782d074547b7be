"""
Event model carrying the capacity ledger.

Key design decisions:
- `available_spots` is denormalized so a booking decision needs one locked row,
  not a SUM over bookings
- CHECK constraints keep 0 <= available_spots <= capacity even if a code path
  misbehaves
- Only the capacity ledger service writes `available_spots`
"""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, UniqueConstraint, Uuid

from event_reservations.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    venue_name = Column(String(255), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    capacity = Column(Integer, nullable=False)
    available_spots = Column(Integer, nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("slug", name="uq_events_slug"),
        CheckConstraint("capacity >= 0", name="check_event_capacity_non_negative"),
        CheckConstraint("available_spots >= 0", name="check_available_spots_non_negative"),
        CheckConstraint("available_spots <= capacity", name="check_available_lte_capacity"),
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        Index("ix_events_event_date", "event_date"),
        Index("ix_events_published_date", "is_published", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, slug={self.slug}, available={self.available_spots}/{self.capacity})>"
