# backend/app/models/booking.py
"""
Booking model for the service booking platform.

A booking is the contract between a customer and the platform for one
appliance service visit. It carries two independent status axes:

- ``status``: the lifecycle (pending -> confirmed -> completed, or cancelled)
- ``payment_status``: what the payment gateway last reported

The price is resolved once at creation and snapshotted onto the row
(listed price, applied discount, final amount). Those columns are frozen:
later discount edits never reach an existing booking.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    inspect as sa_inspect,
)
from sqlalchemy.orm import relationship, validates

from app.core.timezone_utils import utc_now
from app.core.ulid_helper import generate_ulid
from app.database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting admin acceptance
    CONFIRMED = "confirmed"  # Accepted, visit scheduled
    COMPLETED = "completed"  # Service delivered (terminal)
    CANCELLED = "cancelled"  # Rejected or cancelled (terminal)

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class PaymentStatus(str, Enum):
    """Payment axis, independent from the booking lifecycle."""

    PENDING = "pending"
    PAID = "paid"
    REFUND_PENDING = "refund_pending"  # Paid booking was cancelled, refund not settled yet
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH = "cash"


class EarningsStatus(str, Enum):
    CLAIMABLE = "claimable"


# Columns written once at creation and never again
FROZEN_FIELDS = (
    "booking_code",
    "created_at",
    "listed_price",
    "discount_id",
    "discount_type",
    "discount_value",
    "discount_amount",
    "amount",
)


class Booking(Base):
    """
    Self-contained booking record between a customer and the platform.

    Customer and service details are snapshotted at booking time so the
    record stays meaningful when profiles or the catalog change.
    """

    __tablename__ = "bookings"

    # Identity
    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    booking_code = Column(String(20), nullable=False, unique=True, index=True)

    # Customer snapshot
    customer_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(120), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_address = Column(Text, nullable=False)

    # Assigned technician
    technician_id = Column(String(64), nullable=True, index=True)
    technician_name = Column(String(120), nullable=True)

    # Service snapshot
    service_id = Column(String(64), nullable=False)
    service_name = Column(String(200), nullable=False)
    category_id = Column(String(64), nullable=False)
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(64), nullable=False)
    notes = Column(Text, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    reschedule_count = Column(Integer, nullable=False, default=0)

    # Payment axis
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.ONLINE.value)
    payment_id = Column(String(255), nullable=True, comment="Gateway payment id")
    order_id = Column(String(255), nullable=True, comment="Gateway order id")

    # Frozen pricing snapshot
    listed_price = Column(Numeric(10, 2), nullable=False)
    discount_id = Column(String(26), nullable=True)
    discount_type = Column(String(20), nullable=True)
    discount_value = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    amount = Column(Numeric(10, 2), nullable=False)

    # Technician earnings (set on completion)
    commission_percent = Column(Numeric(5, 2), nullable=True)
    admin_commission = Column(Numeric(10, 2), nullable=True)
    technician_earnings = Column(Numeric(10, 2), nullable=True)
    earnings_status = Column(String(20), nullable=True)
    completion_notes = Column(Text, nullable=True)

    # Timestamps and actors
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(64), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    reactivated_at = Column(DateTime(timezone=True), nullable=True)
    reactivated_by = Column(String(64), nullable=True)

    reschedules = relationship(
        "BookingReschedule",
        back_populates="booking",
        order_by="BookingReschedule.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refund_pending', 'refunded', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("listed_price > 0", name="check_listed_price_positive"),
        CheckConstraint("amount >= 0", name="check_amount_non_negative"),
        CheckConstraint("discount_amount >= 0", name="check_discount_non_negative"),
        Index("ix_bookings_customer_status", "customer_id", "status"),
        Index("ix_bookings_technician_status", "technician_id", "status"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.payment_status:
            self.payment_status = PaymentStatus.PENDING.value
        if self.reschedule_count is None:
            self.reschedule_count = 0
        logger.info(f"Creating booking {self.booking_code} for customer {self.customer_id}")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.booking_code} ({self.id}): customer={self.customer_id}, "
            f"technician={self.technician_id}, date={self.scheduled_date}, "
            f"time={self.scheduled_time}, status={self.status}, payment={self.payment_status}>"
        )

    @validates(*FROZEN_FIELDS)
    def _validate_frozen(self, key: str, value: Any) -> Any:
        current = self.__dict__.get(key)
        # Once persisted, even a NULL snapshot column stays NULL
        if (current is not None or sa_inspect(self).has_identity) and current != value:
            raise ValueError(f"Booking.{key} is frozen once set")
        return value

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def is_rescheduled(self) -> bool:
        """Reschedule is a sub-state of an active booking, never a status of its own."""
        return bool(self.reschedule_count) and not self.is_terminal

    @property
    def discount_applied(self) -> bool:
        return self.discount_id is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses and logging."""

        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        def _money(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            "id": self.id,
            "booking_code": self.booking_code,
            "customer_id": self.customer_id,
            "technician_id": self.technician_id,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "category_id": self.category_id,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time,
            "status": self.status,
            "is_rescheduled": self.is_rescheduled,
            "payment_status": self.payment_status,
            "listed_price": _money(self.listed_price),
            "discount_amount": _money(self.discount_amount),
            "amount": _money(self.amount),
            "created_at": _iso(self.created_at),
            "confirmed_at": _iso(self.confirmed_at),
            "completed_at": _iso(self.completed_at),
            "cancelled_at": _iso(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
        }
