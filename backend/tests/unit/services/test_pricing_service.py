"""
Unit tests for PricingService and the pricing helpers.

Covers:
  - Discount arithmetic (rounding, caps, fixed vs percentage)
  - Technician earnings split on completion
  - Best-offer selection and its tie-breaks
  - Every validity rule that excludes an offer
  - Offer codes and admin offer management
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundException, ValidationException
from app.core.timezone_utils import utc_now
from app.models.discount import Discount, DiscountType
from app.schemas.discount import DiscountCreate, DiscountUpdate
from app.services.pricing_service import (
    compute_discount_amount,
    compute_final_price,
    compute_technician_earnings,
    round_to_unit,
)
from booking_support import CATEGORY_ID, SERVICE_ID


def _resolve(pricing_service, listed="599", **kwargs):
    return pricing_service.resolve_price(
        service_id=kwargs.pop("service_id", SERVICE_ID),
        category_id=kwargs.pop("category_id", CATEGORY_ID),
        listed_price=Decimal(listed),
        **kwargs,
    )


class TestPricingArithmetic:
    def test_percentage_discount_rounds_half_up_to_whole_units(self):
        assert compute_discount_amount(Decimal("599"), "percentage", Decimal("10")) == Decimal("60")
        assert compute_discount_amount(Decimal("250"), "percentage", Decimal("25")) == Decimal("63")

    def test_fixed_discount_never_exceeds_listed_price(self):
        assert compute_discount_amount(Decimal("599"), "fixed", Decimal("1000")) == Decimal("599")
        assert compute_final_price(Decimal("599"), Decimal("599")) == Decimal("0")

    def test_max_discount_amount_caps_percentage(self):
        amount = compute_discount_amount(
            Decimal("1000"), DiscountType.PERCENTAGE.value, Decimal("50"), Decimal("100")
        )
        assert amount == Decimal("100")

    def test_round_to_unit(self):
        assert round_to_unit(Decimal("161.5")) == Decimal("162")
        assert round_to_unit(Decimal("161.49")) == Decimal("161")

    def test_technician_earnings_split(self):
        commission, earnings = compute_technician_earnings(Decimal("539"), Decimal("30"))
        assert commission == Decimal("162")
        assert earnings == Decimal("377")
        assert commission + earnings == Decimal("539")


class TestResolvePrice:
    def test_no_offers_returns_listed_price(self, pricing_service):
        resolution = _resolve(pricing_service)

        assert resolution.final_price == Decimal("599")
        assert resolution.discount_amount == Decimal("0")
        assert resolution.discount_applied is False

    def test_applies_category_offer(self, pricing_service, discount_factory):
        offer = discount_factory()

        resolution = _resolve(pricing_service)

        assert resolution.discount_id == offer.id
        assert resolution.discount_amount == Decimal("60")
        assert resolution.final_price == Decimal("539")
        assert resolution.discount_type == "percentage"

    def test_picks_largest_discount(self, pricing_service, discount_factory):
        discount_factory(name="Ten percent")
        best = discount_factory(name="Flat 100", discount_type="fixed", discount_value=Decimal("100"))

        resolution = _resolve(pricing_service)

        assert resolution.discount_id == best.id
        assert resolution.final_price == Decimal("499")

    def test_equal_discounts_prefer_offer_ending_soonest(self, pricing_service, discount_factory):
        now = utc_now()
        discount_factory(
            id="01HZZZZZZZZZZZZZZZZZZZZZZA",
            discount_type="fixed",
            discount_value=Decimal("50"),
            end_date=now + timedelta(days=20),
        )
        soonest = discount_factory(
            id="01HZZZZZZZZZZZZZZZZZZZZZZB",
            discount_type="fixed",
            discount_value=Decimal("50"),
            end_date=now + timedelta(days=3),
        )

        assert _resolve(pricing_service).discount_id == soonest.id

    def test_equal_discount_and_end_prefers_lowest_id(self, pricing_service, discount_factory):
        end = utc_now() + timedelta(days=5)
        discount_factory(
            id="01HZZZZZZZZZZZZZZZZZZZZZZD", discount_type="fixed", discount_value=Decimal("50"), end_date=end
        )
        discount_factory(
            id="01HZZZZZZZZZZZZZZZZZZZZZZC", discount_type="fixed", discount_value=Decimal("50"), end_date=end
        )

        assert _resolve(pricing_service).discount_id == "01HZZZZZZZZZZZZZZZZZZZZZZC"

    @pytest.mark.parametrize(
        "overrides",
        [
            pytest.param({"is_active": False}, id="inactive"),
            pytest.param({"end_date": utc_now() - timedelta(hours=1)}, id="expired"),
            pytest.param({"start_date": utc_now() + timedelta(days=1)}, id="not-started"),
            pytest.param({"category_id": "washing-machine"}, id="other-category"),
            pytest.param({"service_id": "svc-ac-install"}, id="other-service"),
            pytest.param({"min_order_value": Decimal("1000")}, id="below-min-order"),
            pytest.param({"usage_limit": 5, "usage_count": 5}, id="usage-exhausted"),
        ],
    )
    def test_inapplicable_offer_is_ignored(self, pricing_service, discount_factory, overrides):
        discount_factory(**overrides)

        resolution = _resolve(pricing_service)

        assert resolution.discount_applied is False
        assert resolution.final_price == Decimal("599")

    def test_service_scoped_offer_applies_to_that_service(self, pricing_service, discount_factory):
        offer = discount_factory(service_id=SERVICE_ID)

        assert _resolve(pricing_service).discount_id == offer.id

    def test_per_user_limit_skips_offer_for_that_user_only(
        self, db, pricing_service, discount_factory
    ):
        offer = discount_factory(per_user_limit=1)
        resolution = _resolve(pricing_service, user_id="cust-1")
        assert pricing_service.redeem(resolution, "cust-1") is True
        db.commit()

        assert _resolve(pricing_service, user_id="cust-1").discount_applied is False
        assert _resolve(pricing_service, user_id="cust-2").discount_id == offer.id

    def test_offer_code_is_case_insensitive(self, pricing_service, discount_factory):
        discount_factory(name="Site-wide", discount_value=Decimal("5"))
        coded = discount_factory(name="Festive", code="SAVE20", discount_value=Decimal("20"))

        resolution = _resolve(pricing_service, offer_code="save20")

        assert resolution.discount_id == coded.id
        assert resolution.final_price == Decimal("479")

    def test_code_gated_offer_is_not_applied_without_code(self, pricing_service, discount_factory):
        discount_factory(code="SAVE20", discount_value=Decimal("20"))

        assert _resolve(pricing_service).discount_applied is False

    def test_unknown_offer_code_falls_back_to_listed_price(self, pricing_service, discount_factory):
        discount_factory()

        resolution = _resolve(pricing_service, offer_code="NOPE")

        assert resolution.discount_applied is False
        assert resolution.final_price == Decimal("599")

    def test_excluded_offer_is_skipped(self, pricing_service, discount_factory):
        offer = discount_factory()

        resolution = _resolve(pricing_service, exclude_discount_ids={offer.id})

        assert resolution.discount_applied is False

    @pytest.mark.parametrize("listed", ["0", "-10"])
    def test_non_positive_listed_price_rejected(self, pricing_service, listed):
        with pytest.raises(ValidationException) as exc_info:
            _resolve(pricing_service, listed=listed)

        assert exc_info.value.code == "INVALID_PRICE"


class TestRedeem:
    def test_total_usage_limit_holds(self, db, pricing_service, discount_factory):
        offer = discount_factory(usage_limit=1)
        resolution = _resolve(pricing_service)

        assert pricing_service.redeem(resolution, "cust-1") is True
        assert pricing_service.redeem(resolution, "cust-2") is False
        db.commit()

        db.refresh(offer)
        assert offer.usage_count == 1

    def test_per_user_cap_gives_back_total_use(self, db, pricing_service, discount_factory):
        offer = discount_factory(usage_limit=10, per_user_limit=1)
        resolution = _resolve(pricing_service, user_id="cust-1")

        assert pricing_service.redeem(resolution, "cust-1") is True
        assert pricing_service.redeem(resolution, "cust-1") is False
        db.commit()

        db.refresh(offer)
        assert offer.usage_count == 1
        assert pricing_service.discount_repository.get_user_usage(offer.id, "cust-1") == 1

    def test_offer_expired_after_quote_is_not_redeemed(self, db, pricing_service, discount_factory):
        offer = discount_factory()
        resolution = _resolve(pricing_service)
        offer.end_date = utc_now() - timedelta(minutes=1)
        db.commit()

        assert pricing_service.redeem(resolution, "cust-1") is False
        db.commit()

        db.refresh(offer)
        assert offer.usage_count == 0

    def test_listed_price_resolution_needs_no_redemption(self, pricing_service):
        assert pricing_service.redeem(_resolve(pricing_service), "cust-1") is True


class TestOfferManagement:
    def _payload(self, **overrides):
        now = utc_now()
        fields = {
            "name": "Diwali Deal",
            "category_id": CATEGORY_ID,
            "discount_type": "percentage",
            "discount_value": Decimal("15"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=7),
        }
        fields.update(overrides)
        return DiscountCreate(**fields)

    def test_create_discount_uppercases_code(self, pricing_service):
        discount = pricing_service.create_discount(self._payload(code="diwali15"))

        assert discount.code == "DIWALI15"
        assert discount.usage_count == 0
        assert pricing_service.get_discount(discount.id).name == "Diwali Deal"

    def test_duplicate_code_rejected(self, pricing_service):
        pricing_service.create_discount(self._payload(code="DIWALI15"))

        with pytest.raises(ValidationException) as exc_info:
            pricing_service.create_discount(self._payload(code="diwali15"))

        assert exc_info.value.code == "DUPLICATE_OFFER_CODE"

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"discount_value": Decimal("120")}, "INVALID_DISCOUNT"),
            ({"discount_value": Decimal("0")}, "INVALID_DISCOUNT"),
            ({"end_date": utc_now() - timedelta(days=2)}, "INVALID_DATE_RANGE"),
            ({"max_discount_amount": Decimal("0")}, "INVALID_DISCOUNT"),
        ],
    )
    def test_invalid_offer_rejected(self, pricing_service, overrides, code):
        with pytest.raises(ValidationException) as exc_info:
            pricing_service.create_discount(self._payload(**overrides))

        assert exc_info.value.code == code

    def test_update_discount_validates_merged_fields(self, pricing_service):
        discount = pricing_service.create_discount(self._payload())

        updated = pricing_service.update_discount(discount.id, DiscountUpdate(discount_value=Decimal("20")))
        assert updated.discount_value == Decimal("20")

        with pytest.raises(ValidationException):
            pricing_service.update_discount(discount.id, DiscountUpdate(discount_value=Decimal("150")))

    def test_null_on_required_field_keeps_current_value(self, pricing_service):
        discount = pricing_service.create_discount(self._payload())

        updated = pricing_service.update_discount(
            discount.id, DiscountUpdate(discount_type=None, name=None, discount_value=Decimal("20"))
        )

        assert updated.discount_type == DiscountType.PERCENTAGE.value
        assert updated.name == "Diwali Deal"
        assert updated.discount_value == Decimal("20")

    def test_usage_limit_cannot_drop_below_usage(self, pricing_service, discount_factory):
        offer = discount_factory(usage_limit=5, usage_count=3)

        with pytest.raises(ValidationException) as exc_info:
            pricing_service.update_discount(offer.id, DiscountUpdate(usage_limit=2))

        assert exc_info.value.code == "USAGE_LIMIT_BELOW_USAGE"
        assert pricing_service.update_discount(offer.id, DiscountUpdate(usage_limit=3)).usage_limit == 3

    def test_deactivated_offer_stops_applying(self, pricing_service):
        discount = pricing_service.create_discount(self._payload())
        assert _resolve(pricing_service).discount_id == discount.id

        pricing_service.set_discount_active(discount.id, False)

        assert _resolve(pricing_service).discount_applied is False
        assert pricing_service.list_discounts(active_only=True) == []

    def test_unknown_discount_not_found(self, pricing_service):
        with pytest.raises(NotFoundException) as exc_info:
            pricing_service.get_discount("01HZZZZZZZZZZZZZZZZZZZZZZZ")

        assert exc_info.value.code == "DISCOUNT_NOT_FOUND"

    def test_list_discounts_filters_by_category(self, pricing_service, discount_factory):
        discount_factory()
        discount_factory(category_id="washing-machine")

        offers = pricing_service.list_discounts(category_id=CATEGORY_ID)

        assert [o.category_id for o in offers] == [CATEGORY_ID]
        assert all(isinstance(o, Discount) for o in offers)
