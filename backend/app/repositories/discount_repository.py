# backend/app/repositories/discount_repository.py
"""
Discount Repository for the booking core.

Reads offers for price resolution and performs redemption as
increment-if-below-limit conditional UPDATEs, so a usage cap holds under
any number of concurrent bookings.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.timezone_utils import utc_now
from ..core.ulid_helper import generate_ulid
from ..models.discount import Discount, DiscountUsage
from .base_repository import BaseRepository
from .booking_repository import insert_if_absent

logger = logging.getLogger(__name__)


class DiscountRepository(BaseRepository[Discount]):
    """Repository for discount offers and their redemption counters."""

    def __init__(self, db: Session):
        super().__init__(db, Discount)

    def get_by_code(self, code: str) -> Optional[Discount]:
        """Case-insensitive lookup of a code-gated offer."""
        try:
            return (
                self.db.query(Discount)
                .populate_existing()
                .filter(func.upper(Discount.code) == code.strip().upper())
                .first()
            )
        except SQLAlchemyError as e:
            self._raise_store_error("retrieve", e)

    def find_candidates(
        self, category_id: str, service_id: Optional[str] = None
    ) -> List[Discount]:
        """
        Active, code-less offers for a category.

        Date window and usage limits are checked by the caller against a
        single clock reading.
        """
        query = self.db.query(Discount).populate_existing().filter(
            Discount.category_id == category_id,
            Discount.is_active.is_(True),
            Discount.code.is_(None),
        )
        if service_id is not None:
            query = query.filter(or_(Discount.service_id.is_(None), Discount.service_id == service_id))
        return self._execute_query(query.order_by(Discount.id))

    def list_discounts(
        self, category_id: Optional[str] = None, active_only: bool = False
    ) -> List[Discount]:
        query = self.db.query(Discount)
        if category_id is not None:
            query = query.filter(Discount.category_id == category_id)
        if active_only:
            query = query.filter(Discount.is_active.is_(True))
        return self._execute_query(query.order_by(Discount.created_at.desc(), Discount.id))

    def get_user_usage(self, discount_id: str, user_id: str) -> int:
        try:
            count = self.db.execute(
                select(DiscountUsage.usage_count).where(
                    DiscountUsage.discount_id == discount_id,
                    DiscountUsage.user_id == user_id,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self._raise_store_error("read usage", e)
        return int(count or 0)

    def try_redeem(
        self,
        discount_id: str,
        user_id: Optional[str] = None,
        per_user_limit: Optional[int] = None,
    ) -> bool:
        """
        Consume one use of an offer.

        Returns False, leaving every counter untouched, when the total or
        per-user limit has already been reached. Must run inside the
        transaction that persists the booking.
        """
        now = utc_now()
        total_stmt = (
            update(Discount)
            .where(
                Discount.id == discount_id,
                Discount.is_active.is_(True),
                Discount.start_date <= now,
                Discount.end_date >= now,
                or_(Discount.usage_limit.is_(None), Discount.usage_count < Discount.usage_limit),
            )
            .values(usage_count=Discount.usage_count + 1)
        )
        if self._execute_update("redeem discount", total_stmt) != 1:
            logger.info("Discount %s exhausted or inactive", discount_id)
            return False

        if user_id is None:
            return True

        try:
            insert_if_absent(
                self.db,
                DiscountUsage.__table__,
                {
                    "id": generate_ulid(),
                    "discount_id": discount_id,
                    "user_id": user_id,
                    "usage_count": 0,
                },
                ["discount_id", "user_id"],
            )
        except SQLAlchemyError as e:
            self._raise_store_error("redeem discount", e)

        user_stmt = update(DiscountUsage).where(
            DiscountUsage.discount_id == discount_id,
            DiscountUsage.user_id == user_id,
        )
        if per_user_limit is not None:
            user_stmt = user_stmt.where(DiscountUsage.usage_count < per_user_limit)
        user_stmt = user_stmt.values(
            usage_count=DiscountUsage.usage_count + 1, last_used_at=utc_now()
        )
        if self._execute_update("redeem discount", user_stmt) == 1:
            return True

        # Per-user cap reached: give back the total use taken above
        self._execute_update(
            "release discount",
            update(Discount)
            .where(Discount.id == discount_id)
            .values(usage_count=Discount.usage_count - 1),
        )
        logger.info("Discount %s per-user limit reached for %s", discount_id, user_id)
        return False
