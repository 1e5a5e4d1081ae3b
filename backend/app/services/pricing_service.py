"""Centralized pricing and discount resolution for bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundException, ValidationException
from app.core.timezone_utils import utc_now
from app.models.discount import Discount, DiscountType
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.discount_repository import DiscountRepository
from app.repositories.factory import RepositoryFactory
from app.schemas.discount import DiscountCreate, DiscountUpdate
from app.services.base import BaseService

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Columns an offer edit may change but never clear
REQUIRED_OFFER_FIELDS = frozenset({"name", "discount_type", "discount_value", "start_date", "end_date"})


@dataclass(frozen=True)
class PriceResolution:
    """Outcome of resolving a listed price against the active offers."""

    listed_price: Decimal
    final_price: Decimal
    discount_amount: Decimal = ZERO
    discount_id: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_name: Optional[str] = None
    per_user_limit: Optional[int] = None

    @property
    def discount_applied(self) -> bool:
        return self.discount_id is not None


def to_decimal(value: Any, field: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationException(
            f"{field} must be a number", code="INVALID_AMOUNT", details={field: str(value)}
        )
    if not result.is_finite():
        raise ValidationException(
            f"{field} must be a number", code="INVALID_AMOUNT", details={field: str(value)}
        )
    return result


def round_to_unit(value: Decimal) -> Decimal:
    """Round half-up to whole currency units."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def compute_discount_amount(
    listed_price: Decimal,
    discount_type: str,
    discount_value: Decimal,
    max_discount_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Discount taken off ``listed_price``.

    Percentage discounts round half-up to whole units; fixed discounts
    never exceed the listed price. ``max_discount_amount`` caps both.
    """
    if DiscountType(discount_type) is DiscountType.PERCENTAGE:
        amount = round_to_unit(listed_price * discount_value / HUNDRED)
    else:
        amount = discount_value

    if max_discount_amount is not None:
        amount = min(amount, max_discount_amount)
    return max(min(amount, listed_price), ZERO)


def compute_final_price(listed_price: Decimal, discount_amount: Decimal) -> Decimal:
    return max(listed_price - discount_amount, ZERO)


def compute_technician_earnings(amount: Decimal, commission_percent: Decimal) -> Tuple[Decimal, Decimal]:
    """Split a completed booking's amount into (admin_commission, technician_earnings)."""
    commission = round_to_unit(amount * commission_percent / HUNDRED)
    return commission, amount - commission


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PricingService(BaseService):
    """Resolve booking prices against admin-managed offers, and manage those offers."""

    def __init__(self, db_session: Session, discount_repository: Optional[DiscountRepository] = None) -> None:
        super().__init__(db_session)
        self.discount_repository: DiscountRepository = (
            discount_repository or RepositoryFactory.create_discount_repository(db_session)
        )

    # Price resolution

    @BaseService.measure_operation("pricing.resolve_price")
    def resolve_price(
        self,
        service_id: str,
        category_id: str,
        listed_price: Any,
        offer_code: Optional[str] = None,
        user_id: Optional[str] = None,
        exclude_discount_ids: Iterable[str] = (),
    ) -> PriceResolution:
        """
        Resolve the price a customer pays for a service right now.

        With ``offer_code`` only that offer is considered; an unknown or
        inapplicable code quietly yields the listed price. Without one, the
        applicable code-less offer with the largest discount wins (ties: the
        offer ending soonest, then the lowest id).
        """
        listed = to_decimal(listed_price, "listed_price")
        if listed <= ZERO:
            raise ValidationException(
                "Listed price must be greater than zero",
                code="INVALID_PRICE",
                details={"listed_price": str(listed)},
            )

        excluded = set(exclude_discount_ids)
        if offer_code and offer_code.strip():
            offer = self.discount_repository.get_by_code(offer_code)
            candidates = [offer] if offer is not None else []
            if not candidates:
                self.logger.info(f"Offer code {offer_code!r} not found; using listed price")
        else:
            candidates = self.discount_repository.find_candidates(category_id, service_id)

        now = utc_now()
        best: Optional[Tuple[Decimal, Discount]] = None
        for offer in candidates:
            if offer.id in excluded:
                continue
            if not self.is_offer_applicable(offer, listed, category_id, service_id, now, user_id):
                continue
            amount = compute_discount_amount(
                listed,
                offer.discount_type,
                Decimal(offer.discount_value),
                offer.max_discount_amount,
            )
            if amount <= ZERO:
                continue
            if best is None or self._ranks_above(amount, offer, best):
                best = (amount, offer)

        if best is None:
            return PriceResolution(listed_price=listed, final_price=listed)

        amount, offer = best
        return PriceResolution(
            listed_price=listed,
            final_price=compute_final_price(listed, amount),
            discount_amount=amount,
            discount_id=offer.id,
            discount_type=offer.discount_type,
            discount_value=Decimal(offer.discount_value),
            discount_name=offer.name,
            per_user_limit=offer.per_user_limit,
        )

    @staticmethod
    def _ranks_above(amount: Decimal, offer: Discount, best: Tuple[Decimal, Discount]) -> bool:
        best_amount, best_offer = best
        if amount != best_amount:
            return amount > best_amount
        offer_end, best_end = _as_utc(offer.end_date), _as_utc(best_offer.end_date)
        if offer_end != best_end:
            return offer_end < best_end
        return offer.id < best_offer.id

    def is_offer_applicable(
        self,
        offer: Discount,
        listed_price: Decimal,
        category_id: str,
        service_id: Optional[str],
        now: datetime,
        user_id: Optional[str] = None,
    ) -> bool:
        """Every validity rule must hold; the first failing one is logged at debug level."""
        reason: Optional[str] = None
        if not offer.is_active:
            reason = "inactive"
        elif not (_as_utc(offer.start_date) <= now <= _as_utc(offer.end_date)):
            reason = "outside date window"
        elif offer.category_id != category_id:
            reason = "category mismatch"
        elif offer.service_id is not None and offer.service_id != service_id:
            reason = "service mismatch"
        elif offer.min_order_value is not None and listed_price < offer.min_order_value:
            reason = "below minimum order value"
        elif not offer.has_remaining_usage:
            reason = "usage limit reached"
        elif (
            user_id is not None
            and offer.per_user_limit is not None
            and self.discount_repository.get_user_usage(offer.id, user_id) >= offer.per_user_limit
        ):
            reason = "per-user limit reached"

        if reason is not None:
            self.logger.debug(f"Offer {offer.id} skipped: {reason}")
            return False
        return True

    def redeem(self, resolution: PriceResolution, user_id: Optional[str]) -> bool:
        """
        Consume one use of the resolved offer inside the caller's transaction.

        Returns False when a concurrent booking took the last use.
        """
        if not resolution.discount_applied:
            return True
        redeemed = self.discount_repository.try_redeem(
            resolution.discount_id, user_id=user_id, per_user_limit=resolution.per_user_limit
        )
        prometheus_metrics.record_discount_redemption("redeemed" if redeemed else "exhausted")
        return redeemed

    # Offer management (admin)

    @BaseService.measure_operation("pricing.create_discount")
    def create_discount(self, data: DiscountCreate) -> Discount:
        fields = data.model_dump()
        fields["discount_type"] = DiscountType(fields["discount_type"]).value
        if fields.get("code"):
            fields["code"] = fields["code"].strip().upper()
            if self.discount_repository.get_by_code(fields["code"]) is not None:
                raise ValidationException(
                    f"Offer code {fields['code']} already exists", code="DUPLICATE_OFFER_CODE"
                )
        self._validate_offer_fields(fields)
        # Stored in UTC so the redemption window can be checked in SQL
        for key in ("start_date", "end_date"):
            fields[key] = _as_utc(fields[key])

        with self.transaction():
            discount = self.discount_repository.create(**fields, usage_count=0)

        self.log_operation("create_discount", discount_id=discount.id, category_id=discount.category_id)
        return discount

    @BaseService.measure_operation("pricing.update_discount")
    def update_discount(self, discount_id: str, data: DiscountUpdate) -> Discount:
        discount = self.get_discount(discount_id)
        changes = data.model_dump(exclude_unset=True)
        # An explicit null on a required column means "leave it as is"
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key not in REQUIRED_OFFER_FIELDS
        }
        if "discount_type" in changes:
            changes["discount_type"] = DiscountType(changes["discount_type"]).value

        usage_limit = changes.get("usage_limit")
        if usage_limit is not None and usage_limit < (discount.usage_count or 0):
            raise ValidationException(
                "Usage limit cannot be lower than the offer's current usage",
                code="USAGE_LIMIT_BELOW_USAGE",
                details={"usage_limit": usage_limit, "usage_count": discount.usage_count},
            )

        merged = {
            column: getattr(discount, column)
            for column in (
                "name",
                "category_id",
                "discount_type",
                "discount_value",
                "max_discount_amount",
                "min_order_value",
                "start_date",
                "end_date",
            )
        }
        merged.update(changes)
        self._validate_offer_fields(merged)
        for key in ("start_date", "end_date"):
            if key in changes:
                changes[key] = _as_utc(changes[key])

        with self.transaction():
            for key, value in changes.items():
                setattr(discount, key, value)

        self.log_operation("update_discount", discount_id=discount_id, fields=sorted(changes))
        return discount

    @BaseService.measure_operation("pricing.set_discount_active")
    def set_discount_active(self, discount_id: str, is_active: bool) -> Discount:
        discount = self.get_discount(discount_id)
        with self.transaction():
            discount.is_active = is_active
        self.log_operation("set_discount_active", discount_id=discount_id, is_active=is_active)
        return discount

    def get_discount(self, discount_id: str) -> Discount:
        discount = self.discount_repository.get_by_id(discount_id, load_relationships=False)
        if discount is None:
            raise NotFoundException(f"Discount {discount_id} not found", code="DISCOUNT_NOT_FOUND")
        return discount

    def list_discounts(self, category_id: Optional[str] = None, active_only: bool = False) -> List[Discount]:
        return self.discount_repository.list_discounts(category_id=category_id, active_only=active_only)

    @staticmethod
    def _validate_offer_fields(fields: dict) -> None:
        if not (fields.get("name") or "").strip():
            raise ValidationException("Offer name is required", code="MISSING_FIELD", details={"field": "name"})
        if not (fields.get("category_id") or "").strip():
            raise ValidationException(
                "Offer category is required", code="MISSING_FIELD", details={"field": "category_id"}
            )

        value = to_decimal(fields.get("discount_value"), "discount_value")
        if value <= ZERO:
            raise ValidationException("Discount value must be greater than zero", code="INVALID_DISCOUNT")
        if DiscountType(fields["discount_type"]) is DiscountType.PERCENTAGE and value > HUNDRED:
            raise ValidationException("Percentage discount cannot exceed 100", code="INVALID_DISCOUNT")

        cap = fields.get("max_discount_amount")
        if cap is not None and to_decimal(cap, "max_discount_amount") <= ZERO:
            raise ValidationException("Maximum discount must be greater than zero", code="INVALID_DISCOUNT")
        floor = fields.get("min_order_value")
        if floor is not None and to_decimal(floor, "min_order_value") < ZERO:
            raise ValidationException("Minimum order value cannot be negative", code="INVALID_DISCOUNT")

        start, end = fields.get("start_date"), fields.get("end_date")
        if start is None or end is None or _as_utc(end) <= _as_utc(start):
            raise ValidationException(
                "Offer end date must be after its start date", code="INVALID_DATE_RANGE"
            )
