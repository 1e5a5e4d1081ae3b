# backend/app/schemas/booking.py
"""
Booking schemas for the service booking platform.

Request DTOs only check shape. Business rules (non-empty fields, price,
scheduling horizon) are enforced by BookingService so that every caller,
HTTP or not, gets the same ValidationException.
"""

from datetime import date, datetime
from decimal import Decimal
import re
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ..core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH, MAX_TIME_SLOT_LENGTH
from ..models.booking import BookingStatus, PaymentMethod, PaymentStatus
from ._strict_base import StrictModel, StrictRequestModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


class CustomerInfo(StrictRequestModel):
    """Contact details snapshotted onto the booking."""

    customer_id: Optional[str] = Field(
        None, max_length=64, description="Required when an admin books on a customer's behalf"
    )
    name: str = Field(..., max_length=120)
    phone: str = Field(..., max_length=32)
    email: str = Field(..., max_length=255)
    address: str = Field(..., max_length=1000)


class BookingCreate(StrictRequestModel):
    """Create a booking for one service visit."""

    customer: CustomerInfo
    service_id: str = Field(..., max_length=64)
    service_name: str = Field(..., max_length=200)
    category_id: str = Field(..., max_length=64)
    listed_price: Decimal = Field(..., max_digits=10, decimal_places=2)
    scheduled_date: date = Field(..., description="Visit date (YYYY-MM-DD)")
    scheduled_time: str = Field(..., max_length=MAX_TIME_SLOT_LENGTH, description="Time window, e.g. '10:00 AM - 12:00 PM'")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    offer_code: Optional[str] = Field(None, max_length=50)
    payment_method: PaymentMethod = PaymentMethod.ONLINE

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "scheduled_date")

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class BookingActionRequest(StrictRequestModel):
    """Optional context for accept/reject/complete/cancel/reactivate."""

    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class BookingReschedule(StrictRequestModel):
    scheduled_date: date
    scheduled_time: str = Field(..., max_length=MAX_TIME_SLOT_LENGTH)

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "scheduled_date")


class TechnicianAssignment(StrictRequestModel):
    technician_id: str = Field(..., min_length=1, max_length=64)
    technician_name: Optional[str] = Field(None, max_length=120)


class PaymentResult(StrictRequestModel):
    """Terminal result reported by the payment gateway. References are stored verbatim."""

    status: Literal["paid", "failed", "refunded"]
    payment_id: Optional[str] = Field(None, max_length=255)
    order_id: Optional[str] = Field(None, max_length=255)


class BookingRescheduleResponse(StrictModel):
    previous_date: date
    previous_time: str
    new_date: date
    new_time: str
    actor_id: str
    actor_role: str
    created_at: datetime


class BookingResponse(StrictModel):
    """Booking as seen by any actor allowed to view it."""

    id: str
    booking_code: str
    status: BookingStatus
    is_rescheduled: bool
    reschedule_count: int

    customer_id: str
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: str
    technician_id: Optional[str] = None
    technician_name: Optional[str] = None

    service_id: str
    service_name: str
    category_id: str
    scheduled_date: date
    scheduled_time: str
    notes: Optional[str] = None

    payment_status: PaymentStatus
    payment_method: PaymentMethod
    payment_id: Optional[str] = None
    order_id: Optional[str] = None

    listed_price: Decimal
    discount_id: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_amount: Decimal
    amount: Decimal

    commission_percent: Optional[Decimal] = None
    admin_commission: Optional[Decimal] = None
    technician_earnings: Optional[Decimal] = None
    earnings_status: Optional[str] = None
    completion_notes: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    reactivated_at: Optional[datetime] = None
    reactivated_by: Optional[str] = None


class BookingListResponse(StrictModel):
    items: List[BookingResponse]
    count: int
