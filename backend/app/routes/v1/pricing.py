"""V1 price resolution endpoint for booking quotes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_current_actor
from ...api.dependencies.services import get_pricing_service
from ...core.enums import ActorRole
from ...core.exceptions import DomainException
from ...schemas.discount import PriceResolutionResponse, PriceResolveRequest
from ...services.booking_permissions import Actor
from ...services.pricing_service import PricingService

logger = logging.getLogger(__name__)

# V1 router - mounted at /api/v1/pricing
router = APIRouter(tags=["pricing"])


@router.post("/resolve", response_model=PriceResolutionResponse)
def resolve_price(
    payload: PriceResolveRequest,
    actor: Actor = Depends(get_current_actor),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> PriceResolutionResponse:
    """Quote what the caller would pay for a service right now. Nothing is redeemed."""

    user_id = actor.id if actor.role is ActorRole.CUSTOMER else None
    try:
        resolution = pricing_service.resolve_price(
            service_id=payload.service_id,
            category_id=payload.category_id,
            listed_price=payload.listed_price,
            offer_code=payload.offer_code,
            user_id=user_id,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return PriceResolutionResponse(
        listed_price=resolution.listed_price,
        final_price=resolution.final_price,
        discount_amount=resolution.discount_amount,
        discount_applied=resolution.discount_applied,
        discount_id=resolution.discount_id,
        discount_type=resolution.discount_type,
        discount_value=resolution.discount_value,
        discount_name=resolution.discount_name,
    )
