"""Discount offer and price resolution schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from ..models.discount import DiscountType
from ._strict_base import StrictModel, StrictRequestModel


class DiscountCreate(StrictRequestModel):
    """Admin payload for a new offer. Business rules are checked by the service."""

    name: str = Field(..., min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    category_id: str = Field(..., min_length=1, max_length=64)
    service_id: Optional[str] = Field(None, max_length=64)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., max_digits=10, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    min_order_value: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)


class DiscountUpdate(StrictRequestModel):
    """Partial update; only fields present in the payload are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    service_id: Optional[str] = Field(None, max_length=64)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    min_order_value: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)


class DiscountActiveUpdate(StrictRequestModel):
    is_active: bool


class DiscountResponse(StrictModel):
    id: str
    name: str
    code: Optional[str] = None
    category_id: str
    service_id: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_value: Optional[Decimal] = None
    start_date: datetime
    end_date: datetime
    is_active: bool
    usage_limit: Optional[int] = None
    per_user_limit: Optional[int] = None
    usage_count: int


class PriceResolveRequest(StrictRequestModel):
    service_id: str = Field(..., min_length=1, max_length=64)
    category_id: str = Field(..., min_length=1, max_length=64)
    listed_price: Decimal = Field(..., max_digits=10, decimal_places=2)
    offer_code: Optional[str] = Field(None, max_length=50)


class PriceResolutionResponse(StrictModel):
    """Quoted price for a service; the same rules freeze the price at booking time."""

    listed_price: Decimal
    final_price: Decimal
    discount_amount: Decimal
    discount_applied: bool
    discount_id: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    discount_name: Optional[str] = None
