# backend/app/services/booking_service.py
"""
Booking Lifecycle Manager.

Owns every change to a booking after it exists and the creation itself:

- create_booking: validate, resolve and freeze the price, persist ``pending``
- transition: accept / reject / complete / cancel / reactivate
- reschedule: move the visit without changing status
- assign_technician / record_payment: admin and gateway side updates

Every write is a compare-and-swap against the state this service observed.
If another writer got there first, the booking is re-read and the request
is re-evaluated against the fresh state: it either succeeds from there,
replays idempotently, or fails with ConflictException. Notifications go
out after commit and never fail the operation.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, FrozenSet, List, Optional, Union

from sqlalchemy import case
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, MAX_REASON_LENGTH, MAX_NOTES_LENGTH
from ..core.enums import ActorRole, BookingAction
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now, utc_today
from ..events.booking_events import (
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    TechnicianAssigned,
)
from ..models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    EarningsStatus,
    PaymentStatus,
)
from ..models.booking_reschedule import BookingReschedule
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, PaymentResult
from .base import BaseService
from .booking_permissions import Actor, ensure_can_act, ensure_can_view
from .notification_service import NotificationService
from .pricing_service import PriceResolution, PricingService, compute_technician_earnings

logger = logging.getLogger(__name__)

# Re-evaluations allowed after losing a compare-and-swap race
MAX_CAS_ATTEMPTS = 3


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[BookingStatus]
    target: BookingStatus
    # Requesting the action on a booking already at ``target`` returns it unchanged
    replayable: bool = False


TRANSITIONS: Dict[BookingAction, Transition] = {
    BookingAction.ACCEPT: Transition(
        frozenset({BookingStatus.PENDING}), BookingStatus.CONFIRMED, replayable=True
    ),
    BookingAction.REJECT: Transition(frozenset({BookingStatus.PENDING}), BookingStatus.CANCELLED),
    BookingAction.COMPLETE: Transition(frozenset({BookingStatus.CONFIRMED}), BookingStatus.COMPLETED),
    BookingAction.CANCEL: Transition(
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        BookingStatus.CANCELLED,
        replayable=True,
    ),
    BookingAction.REACTIVATE: Transition(frozenset({BookingStatus.CANCELLED}), BookingStatus.PENDING),
}

# payment result -> payment statuses it may follow
PAYMENT_RESULT_SOURCES: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PAID: frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.REFUNDED: frozenset({PaymentStatus.PAID, PaymentStatus.REFUND_PENDING}),
}


class BookingService(BaseService):
    """
    Service layer for the booking lifecycle.

    All capability checks go through booking_permissions before any state
    is inspected, so a ForbiddenException never leaks booking state.
    """

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        pricing_service: Optional[PricingService] = None,
        repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.pricing_service = pricing_service or PricingService(db)
        self.notification_service = notification_service or NotificationService()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(self, data: BookingCreate, actor: Actor) -> Booking:
        """
        Create a booking in ``pending`` with its price frozen.

        Args:
            data: Booking details
            actor: Customer booking for themselves, or an admin booking on
                a customer's behalf

        Returns:
            The persisted booking

        Raises:
            ForbiddenException: If the actor may not create this booking
            ValidationException: If any field is missing or out of range
        """
        self._ensure_can(actor, BookingAction.CREATE)
        customer_id = self._resolve_customer_id(data, actor)
        self._validate_booking_fields(data)
        self._validate_schedule(data.scheduled_date, settings.booking_horizon_days)

        resolution = self.pricing_service.resolve_price(
            service_id=data.service_id,
            category_id=data.category_id,
            listed_price=data.listed_price,
            offer_code=data.offer_code,
            user_id=customer_id,
        )

        with self.transaction():
            booking_code = self.repository.next_booking_code(
                settings.booking_code_prefix, settings.booking_code_start
            )
            resolution = self._redeem_or_fall_back(data, resolution, customer_id)
            booking = self.repository.create(
                booking_code=booking_code,
                customer_id=customer_id,
                customer_name=data.customer.name.strip(),
                customer_phone=data.customer.phone.strip(),
                customer_email=data.customer.email.strip(),
                customer_address=data.customer.address.strip(),
                service_id=data.service_id,
                service_name=data.service_name.strip(),
                category_id=data.category_id,
                scheduled_date=data.scheduled_date,
                scheduled_time=data.scheduled_time.strip(),
                notes=data.notes or None,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=data.payment_method.value,
                listed_price=resolution.listed_price,
                discount_id=resolution.discount_id,
                discount_type=resolution.discount_type,
                discount_value=resolution.discount_value,
                discount_amount=resolution.discount_amount,
                amount=resolution.final_price,
                created_at=utc_now(),
            )

        prometheus_metrics.record_booking_created(resolution.discount_applied)
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            amount=booking.amount,
            discount_id=booking.discount_id,
        )
        self.notification_service.dispatch(
            BookingCreated(
                booking_id=booking.id,
                booking_code=booking.booking_code,
                customer_id=booking.customer_id,
                actor_id=actor.id,
                actor_role=actor.role.value,
                amount=str(booking.amount),
                created_at=booking.created_at,
            )
        )
        return booking

    def _redeem_or_fall_back(
        self, data: BookingCreate, resolution: PriceResolution, customer_id: str
    ) -> PriceResolution:
        """Redeem the chosen offer; if it was used up meanwhile, re-resolve without it."""
        excluded: set[str] = set()
        for _ in range(settings.max_discount_redemption_attempts):
            if self.pricing_service.redeem(resolution, customer_id):
                return resolution
            excluded.add(resolution.discount_id)
            self.logger.info(
                f"Offer {resolution.discount_id} exhausted during booking creation; re-resolving"
            )
            resolution = self.pricing_service.resolve_price(
                service_id=data.service_id,
                category_id=data.category_id,
                listed_price=data.listed_price,
                offer_code=data.offer_code,
                user_id=customer_id,
                exclude_discount_ids=excluded,
            )
        if self.pricing_service.redeem(resolution, customer_id):
            return resolution
        return PriceResolution(listed_price=resolution.listed_price, final_price=resolution.listed_price)

    def _resolve_customer_id(self, data: BookingCreate, actor: Actor) -> str:
        requested = (data.customer.customer_id or "").strip() or None
        if actor.role is ActorRole.CUSTOMER:
            if requested is not None and requested != actor.id:
                raise ForbiddenException(
                    "Customers can only book for themselves",
                    code="NOT_BOOKING_PARTICIPANT",
                )
            return actor.id
        if requested is None:
            raise ValidationException(
                "customer_id is required when booking on behalf of a customer",
                code="MISSING_FIELD",
                details={"field": "customer.customer_id"},
            )
        return requested

    @staticmethod
    def _validate_booking_fields(data: BookingCreate) -> None:
        required = {
            "customer.name": data.customer.name,
            "customer.phone": data.customer.phone,
            "customer.email": data.customer.email,
            "customer.address": data.customer.address,
            "service_id": data.service_id,
            "service_name": data.service_name,
            "category_id": data.category_id,
            "scheduled_time": data.scheduled_time,
        }
        missing = sorted(name for name, value in required.items() if not (value or "").strip())
        if missing:
            raise ValidationException(
                "Missing required booking fields",
                code="MISSING_FIELD",
                details={"fields": missing},
            )
        if "@" not in data.customer.email:
            raise ValidationException(
                "Customer email is not valid", code="INVALID_EMAIL", details={"field": "customer.email"}
            )
        if data.listed_price is None or data.listed_price <= 0:
            raise ValidationException(
                "Listed price must be greater than zero",
                code="INVALID_PRICE",
                details={"listed_price": str(data.listed_price)},
            )

    @staticmethod
    def _validate_schedule(scheduled_date: date, horizon_days: int) -> None:
        today = utc_today()
        if scheduled_date < today:
            raise ValidationException(
                "Scheduled date cannot be in the past",
                code="DATE_IN_PAST",
                details={"scheduled_date": scheduled_date.isoformat(), "today": today.isoformat()},
            )
        latest = today + timedelta(days=horizon_days)
        if scheduled_date > latest:
            raise ValidationException(
                f"Scheduled date must be within {horizon_days} days",
                code="DATE_OUT_OF_RANGE",
                details={"scheduled_date": scheduled_date.isoformat(), "latest": latest.isoformat()},
            )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("transition_booking")
    def transition(
        self,
        booking_id: str,
        action: Union[BookingAction, str],
        actor: Actor,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Apply a lifecycle action.

        Raises:
            ValidationException: Unknown action or oversize reason/notes
            ForbiddenException: Actor lacks the capability or the booking is not theirs
            NotFoundException: Booking does not exist
            ConflictException: The booking's status does not allow the action
        """
        action = self._parse_action(action)
        rule = TRANSITIONS.get(action)
        if rule is None:
            raise ValidationException(
                f"'{action.value}' is not a status transition", code="INVALID_ACTION"
            )
        reason = self._clean_text(reason, "reason", MAX_REASON_LENGTH)
        notes = self._clean_text(notes, "notes", MAX_NOTES_LENGTH)
        self._ensure_can(actor, action)

        for _ in range(MAX_CAS_ATTEMPTS):
            booking = self._load(booking_id)
            self._ensure_can(actor, action, booking)

            current = booking.status_enum
            if current is rule.target and rule.replayable:
                prometheus_metrics.record_transition(action.value, "replayed")
                self.logger.info(f"Replayed {action.value} on booking {booking_id}: already {current.value}")
                return booking
            if current not in rule.sources:
                prometheus_metrics.record_transition(action.value, "conflict")
                raise InvalidTransitionException(booking_id, action.value, current.value)

            # Completion by a technician is only valid while they are still assigned
            guard_technician = booking.technician_id if action is BookingAction.COMPLETE else None

            with self.transaction():
                applied = self.repository.transition_status_if(
                    booking_id,
                    from_statuses=[current],
                    to_status=rule.target,
                    values=self._transition_values(action, actor, booking, reason, notes),
                    technician_id=guard_technician,
                )
                if applied:
                    updated = self.repository.get_fresh(booking_id)

            if applied:
                prometheus_metrics.record_transition(action.value, "applied")
                self.log_operation(
                    "transition_booking",
                    booking_id=booking_id,
                    action=action.value,
                    from_status=current.value,
                    to_status=rule.target.value,
                )
                self.notification_service.dispatch(
                    BookingStatusChanged(
                        booking_id=booking_id,
                        booking_code=updated.booking_code,
                        action=action.value,
                        from_status=current.value,
                        to_status=rule.target.value,
                        actor_id=actor.id,
                        actor_role=actor.role.value,
                        occurred_at=utc_now(),
                        reason=reason,
                    )
                )
                return updated

            self.logger.info(f"Lost race applying {action.value} to booking {booking_id}; re-reading")

        prometheus_metrics.record_transition(action.value, "conflict")
        raise ConflictException(
            "Booking was modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id, "action": action.value},
        )

    def _transition_values(
        self,
        action: BookingAction,
        actor: Actor,
        booking: Booking,
        reason: Optional[str],
        notes: Optional[str],
    ) -> Dict[str, Any]:
        now = utc_now()
        if action is BookingAction.ACCEPT:
            return {"confirmed_at": now, "confirmed_by": actor.id}

        if action in (BookingAction.REJECT, BookingAction.CANCEL):
            return {
                "cancelled_at": now,
                "cancelled_by": actor.id,
                "cancellation_reason": reason,
                # A paid booking owes the customer a refund
                "payment_status": case(
                    (Booking.payment_status == PaymentStatus.PAID.value, PaymentStatus.REFUND_PENDING.value),
                    else_=Booking.payment_status,
                ),
            }

        if action is BookingAction.COMPLETE:
            values: Dict[str, Any] = {
                "completed_at": now,
                "completed_by": actor.id,
                "completion_notes": notes,
            }
            if booking.technician_id:
                percent = Decimal(settings.default_commission_percent)
                commission, earnings = compute_technician_earnings(Decimal(booking.amount), percent)
                values.update(
                    commission_percent=percent,
                    admin_commission=commission,
                    technician_earnings=earnings,
                    earnings_status=EarningsStatus.CLAIMABLE.value,
                )
            return values

        # Reactivate: back to a fresh pending booking
        return {
            "cancelled_at": None,
            "cancelled_by": None,
            "cancellation_reason": None,
            "confirmed_at": None,
            "confirmed_by": None,
            "reactivated_at": now,
            "reactivated_by": actor.id,
            # A reactivated booking starts a new pending cycle; the audit rows keep its history
            "reschedule_count": 0,
            "payment_status": case(
                (Booking.payment_status == PaymentStatus.REFUND_PENDING.value, PaymentStatus.PAID.value),
                else_=Booking.payment_status,
            ),
        }

    # ------------------------------------------------------------------
    # Reschedule
    # ------------------------------------------------------------------

    @BaseService.measure_operation("reschedule_booking")
    def reschedule(self, booking_id: str, new_date: date, new_time: str, actor: Actor) -> Booking:
        """
        Move an active booking to a new date/time window. Status is unchanged.

        Rescheduling to the date and time the booking already has succeeds
        without writing anything.
        """
        self._ensure_can(actor, BookingAction.RESCHEDULE)
        new_time = (new_time or "").strip()
        if not new_time:
            raise ValidationException(
                "Scheduled time is required", code="MISSING_FIELD", details={"field": "scheduled_time"}
            )

        for _ in range(MAX_CAS_ATTEMPTS):
            booking = self._load(booking_id)
            self._ensure_can(actor, BookingAction.RESCHEDULE, booking)

            current = booking.status_enum
            if current not in ACTIVE_STATUSES:
                prometheus_metrics.record_transition(BookingAction.RESCHEDULE.value, "conflict")
                raise InvalidTransitionException(booking_id, BookingAction.RESCHEDULE.value, current.value)
            if booking.scheduled_date == new_date and booking.scheduled_time == new_time:
                prometheus_metrics.record_transition(BookingAction.RESCHEDULE.value, "replayed")
                return booking
            self._validate_schedule(new_date, settings.reschedule_horizon_days)

            previous_date, previous_time = booking.scheduled_date, booking.scheduled_time
            with self.transaction():
                applied = self.repository.reschedule_if(
                    booking_id,
                    from_statuses=[current],
                    expected_date=previous_date,
                    expected_time=previous_time,
                    new_date=new_date,
                    new_time=new_time,
                )
                if applied:
                    self.repository.add_reschedule_audit(
                        booking_id=booking_id,
                        previous_date=previous_date,
                        previous_time=previous_time,
                        new_date=new_date,
                        new_time=new_time,
                        actor_id=actor.id,
                        actor_role=actor.role.value,
                    )
                    updated = self.repository.get_fresh(booking_id)

            if applied:
                prometheus_metrics.record_transition(BookingAction.RESCHEDULE.value, "applied")
                self.log_operation(
                    "reschedule_booking",
                    booking_id=booking_id,
                    previous=f"{previous_date} {previous_time}",
                    new=f"{new_date} {new_time}",
                )
                self.notification_service.dispatch(
                    BookingRescheduled(
                        booking_id=booking_id,
                        booking_code=updated.booking_code,
                        status=updated.status,
                        previous_date=previous_date,
                        previous_time=previous_time,
                        new_date=new_date,
                        new_time=new_time,
                        actor_id=actor.id,
                        actor_role=actor.role.value,
                        occurred_at=utc_now(),
                    )
                )
                return updated

        raise ConflictException(
            "Booking was modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id, "action": BookingAction.RESCHEDULE.value},
        )

    def list_reschedules(self, booking_id: str, actor: Actor) -> List[BookingReschedule]:
        booking = self._load(booking_id)
        ensure_can_view(actor, booking)
        return self.repository.list_reschedules(booking_id)

    # ------------------------------------------------------------------
    # Admin and gateway updates
    # ------------------------------------------------------------------

    @BaseService.measure_operation("assign_technician")
    def assign_technician(
        self,
        booking_id: str,
        technician_id: str,
        technician_name: Optional[str],
        actor: Actor,
    ) -> Booking:
        self._ensure_can(actor, BookingAction.ASSIGN_TECHNICIAN)
        technician_id = (technician_id or "").strip()
        if not technician_id:
            raise ValidationException(
                "technician_id is required", code="MISSING_FIELD", details={"field": "technician_id"}
            )

        for _ in range(MAX_CAS_ATTEMPTS):
            booking = self._load(booking_id)
            current = booking.status_enum
            if current.is_terminal:
                raise InvalidTransitionException(
                    booking_id, BookingAction.ASSIGN_TECHNICIAN.value, current.value
                )
            if booking.technician_id == technician_id and booking.technician_name == technician_name:
                return booking

            with self.transaction():
                applied = self.repository.assign_technician_if(
                    booking_id,
                    from_statuses=[current],
                    technician_id=technician_id,
                    technician_name=technician_name,
                )
                if applied:
                    updated = self.repository.get_fresh(booking_id)

            if applied:
                self.log_operation(
                    "assign_technician", booking_id=booking_id, technician_id=technician_id
                )
                self.notification_service.dispatch(
                    TechnicianAssigned(
                        booking_id=booking_id,
                        booking_code=updated.booking_code,
                        status=updated.status,
                        technician_id=technician_id,
                        actor_id=actor.id,
                        actor_role=actor.role.value,
                        occurred_at=utc_now(),
                    )
                )
                return updated

        raise ConflictException(
            "Booking was modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id, "action": BookingAction.ASSIGN_TECHNICIAN.value},
        )

    @BaseService.measure_operation("record_payment")
    def record_payment(self, booking_id: str, result: PaymentResult, actor: Actor) -> Booking:
        """
        Apply a terminal payment gateway result.

        ``paid`` is accepted after pending/failed, ``failed`` after pending
        and ``refunded`` after paid/refund_pending. A ``paid`` result for a
        cancelled booking lands as ``refund_pending``. Repeating the current
        result is a no-op.
        """
        self._ensure_can(actor, BookingAction.RECORD_PAYMENT)
        reported = PaymentStatus(result.status)

        for _ in range(MAX_CAS_ATTEMPTS):
            booking = self._load(booking_id)
            current = PaymentStatus(booking.payment_status)
            if current is reported or (
                reported is PaymentStatus.PAID and current is PaymentStatus.REFUND_PENDING
            ):
                return booking
            if current not in PAYMENT_RESULT_SOURCES[reported]:
                raise ConflictException(
                    f"Cannot record payment '{reported.value}' when payment is '{current.value}'",
                    code="INVALID_PAYMENT_TRANSITION",
                    details={"booking_id": booking_id, "payment_status": current.value},
                )

            values: Dict[str, Any] = {"payment_status": reported.value}
            if reported is PaymentStatus.PAID:
                values["payment_status"] = case(
                    (Booking.status == BookingStatus.CANCELLED.value, PaymentStatus.REFUND_PENDING.value),
                    else_=PaymentStatus.PAID.value,
                )
            if result.payment_id:
                values["payment_id"] = result.payment_id
            if result.order_id:
                values["order_id"] = result.order_id

            with self.transaction():
                applied = self.repository.update_payment_if(
                    booking_id, expected_payment_status=current.value, values=values
                )
                if applied:
                    updated = self.repository.get_fresh(booking_id)

            if applied:
                self.log_operation(
                    "record_payment",
                    booking_id=booking_id,
                    from_payment=current.value,
                    to_payment=updated.payment_status,
                )
                return updated

        raise ConflictException(
            "Booking was modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id, "action": BookingAction.RECORD_PAYMENT.value},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        booking = self._load(booking_id)
        ensure_can_view(actor, booking)
        return booking

    def get_booking_by_code(self, booking_code: str, actor: Actor) -> Booking:
        booking = self.repository.get_by_code(booking_code)
        if booking is None:
            raise NotFoundException(f"Booking {booking_code} not found", code="BOOKING_NOT_FOUND")
        ensure_can_view(actor, booking)
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> List[Booking]:
        """Bookings visible to the actor: own (customer), assigned (technician) or all (admin)."""
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        filters: Dict[str, Any] = {}
        if actor.role is ActorRole.CUSTOMER:
            filters["customer_id"] = actor.id
        elif actor.role is ActorRole.TECHNICIAN:
            filters["technician_id"] = actor.id
        return self.repository.list_bookings(status=status, limit=limit, offset=max(offset, 0), **filters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, booking_id: str) -> Booking:
        booking = self.repository.get_fresh(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    @staticmethod
    def _ensure_can(actor: Actor, action: BookingAction, booking: Optional[Booking] = None) -> None:
        try:
            ensure_can_act(actor, action, booking)
        except ForbiddenException:
            prometheus_metrics.record_transition(action.value, "forbidden")
            raise

    @staticmethod
    def _parse_action(action: Union[BookingAction, str]) -> BookingAction:
        if isinstance(action, BookingAction):
            return action
        try:
            return BookingAction(action)
        except ValueError:
            raise ValidationException(f"Unknown booking action '{action}'", code="INVALID_ACTION")

    @staticmethod
    def _clean_text(value: Optional[str], field: str, max_length: int) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) > max_length:
            raise ValidationException(
                f"{field} cannot exceed {max_length} characters",
                code="TEXT_TOO_LONG",
                details={"field": field, "max_length": max_length},
            )
        return value or None
