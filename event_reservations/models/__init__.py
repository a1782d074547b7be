from event_reservations.models.event import Event
from event_reservations.models.booking import Booking, BookingStatus, NotificationChannel

__all__ = ["Event", "Booking", "BookingStatus", "NotificationChannel"]
