# backend/app/routes/v1/admin.py
"""
Admin booking and offer management - API v1

Mounted at /api/v1/admin. Every route requires an admin caller.

Endpoints:
    POST /bookings/{booking_id}/accept - pending -> confirmed
    POST /bookings/{booking_id}/reject - pending -> cancelled
    POST /bookings/{booking_id}/reactivate - cancelled -> pending
    PUT /bookings/{booking_id}/technician - Assign a technician
    GET /discounts - List offers
    POST /discounts - Create an offer
    GET /discounts/{discount_id} - Offer details
    PATCH /discounts/{discount_id} - Edit an offer
    PATCH /discounts/{discount_id}/active - Enable or disable an offer
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, require_admin
from ...api.dependencies.services import get_pricing_service
from ...core.enums import BookingAction
from ...core.exceptions import DomainException, handle_domain_exception
from ...core.ulid_helper import ULID_PATTERN
from ...schemas.booking import BookingActionRequest, BookingResponse, TechnicianAssignment
from ...schemas.discount import (
    DiscountActiveUpdate,
    DiscountCreate,
    DiscountResponse,
    DiscountUpdate,
)
from ...services.booking_permissions import Actor
from ...services.booking_service import BookingService
from ...services.pricing_service import PricingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-v1"], dependencies=[Depends(require_admin)])


def _apply(
    booking_service: BookingService,
    booking_id: str,
    action: BookingAction,
    actor: Actor,
    payload: Optional[BookingActionRequest],
) -> BookingResponse:
    try:
        booking = booking_service.transition(
            booking_id,
            action,
            actor,
            reason=payload.reason if payload else None,
            notes=payload.notes if payload else None,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/bookings/{booking_id}/accept", response_model=BookingResponse)
def accept_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    payload: Optional[BookingActionRequest] = Body(None),
    actor: Actor = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _apply(booking_service, booking_id, BookingAction.ACCEPT, actor, payload)


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
def reject_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    payload: Optional[BookingActionRequest] = Body(None),
    actor: Actor = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _apply(booking_service, booking_id, BookingAction.REJECT, actor, payload)


@router.post("/bookings/{booking_id}/reactivate", response_model=BookingResponse)
def reactivate_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    payload: Optional[BookingActionRequest] = Body(None),
    actor: Actor = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _apply(booking_service, booking_id, BookingAction.REACTIVATE, actor, payload)


@router.put("/bookings/{booking_id}/technician", response_model=BookingResponse)
def assign_technician(
    payload: TechnicianAssignment,
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    actor: Actor = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.assign_technician(
            booking_id, payload.technician_id, payload.technician_name, actor
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/discounts", response_model=List[DiscountResponse])
def list_discounts(
    category_id: Optional[str] = Query(None, max_length=64),
    active_only: bool = Query(False),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> List[DiscountResponse]:
    discounts = pricing_service.list_discounts(category_id=category_id, active_only=active_only)
    return [DiscountResponse.model_validate(d) for d in discounts]


@router.post("/discounts", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
def create_discount(
    payload: DiscountCreate,
    pricing_service: PricingService = Depends(get_pricing_service),
) -> DiscountResponse:
    try:
        discount = pricing_service.create_discount(payload)
    except DomainException as e:
        handle_domain_exception(e)
    return DiscountResponse.model_validate(discount)


@router.get("/discounts/{discount_id}", response_model=DiscountResponse)
def get_discount(
    discount_id: str = Path(..., pattern=ULID_PATTERN),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> DiscountResponse:
    try:
        discount = pricing_service.get_discount(discount_id)
    except DomainException as e:
        handle_domain_exception(e)
    return DiscountResponse.model_validate(discount)


@router.patch("/discounts/{discount_id}", response_model=DiscountResponse)
def update_discount(
    payload: DiscountUpdate,
    discount_id: str = Path(..., pattern=ULID_PATTERN),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> DiscountResponse:
    """Edit an offer. Bookings already priced with it keep their frozen amounts."""
    try:
        discount = pricing_service.update_discount(discount_id, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return DiscountResponse.model_validate(discount)


@router.patch("/discounts/{discount_id}/active", response_model=DiscountResponse)
def set_discount_active(
    payload: DiscountActiveUpdate,
    discount_id: str = Path(..., pattern=ULID_PATTERN),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> DiscountResponse:
    try:
        discount = pricing_service.set_discount_active(discount_id, payload.is_active)
    except DomainException as e:
        handle_domain_exception(e)
    return DiscountResponse.model_validate(discount)
