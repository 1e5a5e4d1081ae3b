# backend/app/schemas/__init__.py
"""
Pydantic schemas for the FixMate booking API.

Request models reject unknown fields; business rules are enforced by the
services so that HTTP and non-HTTP callers get the same errors.
"""

# Booking schemas
from .booking import (
    BookingActionRequest,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingRescheduleResponse,
    BookingResponse,
    CustomerInfo,
    PaymentResult,
    TechnicianAssignment,
)

# Discount and pricing schemas
from .discount import (
    DiscountActiveUpdate,
    DiscountCreate,
    DiscountResponse,
    DiscountUpdate,
    PriceResolutionResponse,
    PriceResolveRequest,
)
from .main_responses import HealthLiteResponse, HealthResponse

__all__ = [
    # Booking
    "BookingActionRequest",
    "BookingCreate",
    "BookingListResponse",
    "BookingReschedule",
    "BookingRescheduleResponse",
    "BookingResponse",
    "CustomerInfo",
    "PaymentResult",
    "TechnicianAssignment",
    # Discount
    "DiscountActiveUpdate",
    "DiscountCreate",
    "DiscountResponse",
    "DiscountUpdate",
    "PriceResolutionResponse",
    "PriceResolveRequest",
    # Health
    "HealthLiteResponse",
    "HealthResponse",
]
