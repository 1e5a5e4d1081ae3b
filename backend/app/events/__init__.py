"""Booking domain events handed to the notification trigger."""

from app.events.booking_events import (
    STATUS_EVENT_TYPES,
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    TechnicianAssigned,
)

__all__ = [
    "STATUS_EVENT_TYPES",
    "BookingCreated",
    "BookingRescheduled",
    "BookingStatusChanged",
    "TechnicianAssigned",
]
