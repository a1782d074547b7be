"""
Booking model representing a user's reservation for an event.

Key design decisions:
- Partial unique index on (user_id, event_id) for non-cancelled rows: one
  active booking per user per event, while a cancelled booking does not
  block booking the same event again with a fresh row
- Status transitions instead of deletes, so history is kept
- `attendees` and `total_price` are frozen at reservation time
"""

import uuid
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, Uuid, text

from event_reservations.db.base import Base, TimestampMixin


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


# Statuses whose attendees hold seats on the event
SEAT_HOLDING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ATTENDED)

ACTIVE_BOOKING_INDEX = "uq_bookings_active_user_event"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    attendees = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)
    email_notified = Column(Boolean, nullable=False, default=False)
    whatsapp_notified = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index(
            ACTIVE_BOOKING_INDEX,
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        CheckConstraint("attendees > 0", name="check_booking_attendees_positive"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'attended')",
            name="check_booking_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
