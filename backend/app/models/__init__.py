"""
Database models for the FixMate booking core.

The models are organized by functionality:
- Bookings and their reschedule audit trail
- Discount offers and per-user redemption counters
- Named sequences backing booking codes
"""

from .booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    EarningsStatus,
    PaymentMethod,
    PaymentStatus,
)
from .booking_reschedule import BookingReschedule
from .booking_sequence import BookingSequence
from .discount import Discount, DiscountType, DiscountUsage

__all__ = [
    # Booking models
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "PaymentMethod",
    "EarningsStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "BookingReschedule",
    "BookingSequence",
    # Discount models
    "Discount",
    "DiscountType",
    "DiscountUsage",
]
