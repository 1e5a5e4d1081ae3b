"""Booking reschedule audit table."""

from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class BookingReschedule(Base):
    """One row per successful reschedule of a booking."""

    __tablename__ = "booking_reschedules"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    previous_date = Column(Date, nullable=False)
    previous_time = Column(String(64), nullable=False)
    new_date = Column(Date, nullable=False)
    new_time = Column(String(64), nullable=False)

    actor_id = Column(String(64), nullable=False)
    actor_role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    booking = relationship("Booking", back_populates="reschedules")

    def __repr__(self) -> str:
        return (
            f"<BookingReschedule booking={self.booking_id} "
            f"{self.previous_date} {self.previous_time} -> {self.new_date} {self.new_time}>"
        )
