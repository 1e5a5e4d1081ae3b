"""Booking domain events."""
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

# action -> notification event type
STATUS_EVENT_TYPES = {
    "accept": "booking.confirmed",
    "reject": "booking.rejected",
    "complete": "booking.completed",
    "cancel": "booking.cancelled",
    "reactivate": "booking.reactivated",
}


def _serialize(payload: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in payload.items():
        if isinstance(value, (datetime, date)):
            payload[key] = value.isoformat()
    return payload


@dataclass
class BookingCreated:
    """Fired after a booking is successfully created."""

    booking_id: str
    booking_code: str
    customer_id: str
    actor_id: str
    actor_role: str
    amount: str
    created_at: datetime
    from_status: Optional[str] = None
    to_status: str = "pending"

    @property
    def event_type(self) -> str:
        return "booking.created"

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class BookingStatusChanged:
    """Fired after accept, reject, complete, cancel or reactivate commits."""

    booking_id: str
    booking_code: str
    action: str
    from_status: str
    to_status: str
    actor_id: str
    actor_role: str
    occurred_at: datetime
    reason: Optional[str] = None

    @property
    def event_type(self) -> str:
        return STATUS_EVENT_TYPES[self.action]

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class BookingRescheduled:
    """Fired after a booking moves to a new date or time window."""

    booking_id: str
    booking_code: str
    status: str
    previous_date: date
    previous_time: str
    new_date: date
    new_time: str
    actor_id: str
    actor_role: str
    occurred_at: datetime

    @property
    def event_type(self) -> str:
        return "booking.rescheduled"

    @property
    def from_status(self) -> str:
        return self.status

    @property
    def to_status(self) -> str:
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class TechnicianAssigned:
    """Fired after an admin assigns a technician to a booking."""

    booking_id: str
    booking_code: str
    status: str
    technician_id: str
    actor_id: str
    actor_role: str
    occurred_at: datetime

    @property
    def event_type(self) -> str:
        return "booking.technician_assigned"

    @property
    def from_status(self) -> str:
        return self.status

    @property
    def to_status(self) -> str:
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))
