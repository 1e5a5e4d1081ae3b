# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings, shared by every actor.
All business logic, including capability checks, is delegated to
BookingService.

Endpoints:
    GET / - List bookings visible to the caller
    POST / - Create a booking (customer, or admin on a customer's behalf)
    GET /code/{booking_code} - Look a booking up by its BK code
    GET /{booking_id} - Full booking details
    GET /{booking_id}/reschedules - Reschedule history
    POST /{booking_id}/cancel - Cancel a booking (customer own / admin)
    POST /{booking_id}/reschedule - Move a booking (customer own / admin)
    POST /{booking_id}/complete - Mark completed (assigned technician / admin)
    POST /{booking_id}/payment - Record a payment gateway result (system / admin)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, get_current_actor
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.enums import BookingAction
from ...core.exceptions import DomainException, handle_domain_exception
from ...core.ulid_helper import ULID_PATTERN
from ...models.booking import BookingStatus
from ...schemas.booking import (
    BookingActionRequest,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingRescheduleResponse,
    BookingResponse,
    PaymentResult,
)
from ...services.booking_permissions import Actor
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


@router.get("", response_model=BookingListResponse)
def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """List bookings the caller may see, newest first."""
    try:
        bookings = booking_service.list_bookings(actor, status=status_filter, limit=limit, offset=offset)
    except DomainException as e:
        handle_domain_exception(e)
    items = [BookingResponse.model_validate(b) for b in bookings]
    return BookingListResponse(items=items, count=len(items))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Create a pending booking with its price resolved and frozen."""
    try:
        booking = booking_service.create_booking(payload, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/code/{booking_code}", response_model=BookingResponse)
def get_booking_by_code(
    booking_code: str = Path(..., min_length=1, max_length=20),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.get_booking_by_code(booking_code, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.get_booking(booking_id, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/reschedules", response_model=List[BookingRescheduleResponse])
def list_reschedules(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingRescheduleResponse]:
    try:
        rows = booking_service.list_reschedules(booking_id, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return [BookingRescheduleResponse.model_validate(row) for row in rows]


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    payload: Optional[BookingActionRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a pending or confirmed booking. Cancelling twice returns the cancelled booking."""
    reason = payload.reason if payload else None
    try:
        booking = booking_service.transition(booking_id, BookingAction.CANCEL, actor, reason=reason)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    payload: BookingReschedule,
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.reschedule(
            booking_id, payload.scheduled_date, payload.scheduled_time, actor
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    payload: Optional[BookingActionRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    notes = payload.notes if payload else None
    try:
        booking = booking_service.transition(booking_id, BookingAction.COMPLETE, actor, notes=notes)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/payment", response_model=BookingResponse)
def record_payment(
    payload: PaymentResult,
    booking_id: str = Path(..., pattern=ULID_PATTERN),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Apply a terminal payment gateway result to the booking's payment status."""
    try:
        booking = booking_service.record_payment(booking_id, payload, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
