"""
Per-booking notification markers.

Email and WhatsApp senders call mark_notified() after a successful dispatch
and check the flag before sending, so a retried dispatch job does not message
the customer twice. Flags only ever go from false to true.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.exceptions import InvalidArgumentError
from event_reservations.core.logging import get_logger
from event_reservations.models.booking import Booking, NotificationChannel
from event_reservations.services.booking_lifecycle import lock_booking
from event_reservations.services.transaction import unit_of_work
from event_reservations.services.validation import coerce_uuid

logger = get_logger(__name__)


_FLAG_COLUMNS = {
    NotificationChannel.EMAIL: "email_notified",
    NotificationChannel.WHATSAPP: "whatsapp_notified",
}


def _coerce_channel(channel: Any) -> NotificationChannel:
    try:
        return NotificationChannel(channel)
    except ValueError:
        raise InvalidArgumentError(
            'Notification channel must be "email" or "whatsapp"',
            field="channel",
        )


async def mark_notified(db: AsyncSession, booking_id: Any, channel: Any) -> Booking:
    booking_id = coerce_uuid(booking_id, "booking_id")
    channel = _coerce_channel(channel)
    column = _FLAG_COLUMNS[channel]

    async with unit_of_work(db, "mark_notified", booking_id=booking_id):
        booking = await lock_booking(db, booking_id)
        already_set = getattr(booking, column)
        if not already_set:
            setattr(booking, column, True)

    logger.info(
        "booking_notified",
        booking_id=str(booking_id),
        channel=channel.value,
        first_time=not already_set,
    )
    return booking
