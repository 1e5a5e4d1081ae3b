"""
Discount offers applied at booking time.

An offer is scoped to a service category (and optionally a single service),
runs inside a date window, and may be capped in total usage and per user.
Offers are read while pricing a new booking and never written back into
existing bookings.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.timezone_utils import utc_now
from app.core.ulid_helper import generate_ulid
from app.database import Base


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Discount(Base):
    """Admin-managed special offer."""

    __tablename__ = "discounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True, index=True)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    service_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    min_order_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    per_user_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utc_now
    )

    usages: Mapped[list["DiscountUsage"]] = relationship(
        "DiscountUsage", back_populates="discount", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')", name="ck_discounts_discount_type"
        ),
        CheckConstraint("discount_value > 0", name="check_discount_value_positive"),
        CheckConstraint("usage_count >= 0", name="check_usage_count_non_negative"),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="check_usage_within_limit",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Discount {self.id} {self.name!r}: {self.discount_type}={self.discount_value} "
            f"category={self.category_id} used={self.usage_count}/{self.usage_limit}>"
        )

    @property
    def has_remaining_usage(self) -> bool:
        return self.usage_limit is None or (self.usage_count or 0) < self.usage_limit


class DiscountUsage(Base):
    """Per-user redemption counter for a discount."""

    __tablename__ = "discount_usages"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    discount_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    discount: Mapped["Discount"] = relationship("Discount", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("discount_id", "user_id", name="uq_discount_usage_user"),
        CheckConstraint("usage_count >= 0", name="check_discount_usage_non_negative"),
    )
