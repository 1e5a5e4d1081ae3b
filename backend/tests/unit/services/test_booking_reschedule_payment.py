"""Reschedule, technician assignment and payment result handling."""

from datetime import timedelta

import pytest

from app.core.enums import BookingAction
from app.core.exceptions import ConflictException, ForbiddenException, ValidationException
from app.core.timezone_utils import utc_today
from app.schemas.booking import PaymentResult
from booking_support import ADMIN, CUSTOMER, OTHER_CUSTOMER, SYSTEM, TECHNICIAN

NEW_SLOT = "02:00 PM - 04:00 PM"


class TestReschedule:
    def test_reschedule_moves_visit_and_keeps_status(self, booking_service, make_booking, notifications):
        booking = make_booking()
        original_date = booking.scheduled_date
        new_date = utc_today() + timedelta(days=5)

        moved = booking_service.reschedule(booking.id, new_date, NEW_SLOT, CUSTOMER)

        assert moved.status == "pending"
        assert moved.scheduled_date == new_date
        assert moved.scheduled_time == NEW_SLOT
        assert moved.reschedule_count == 1
        assert moved.is_rescheduled is True

        history = booking_service.list_reschedules(booking.id, CUSTOMER)
        assert len(history) == 1
        assert history[0].previous_date == original_date
        assert history[0].new_date == new_date
        assert history[0].actor_role == "customer"

        message = notifications.messages[-1]
        assert message.event_type == "booking.rescheduled"
        assert message.recipient_role == "admin"

    def test_reschedule_confirmed_booking(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.transition(booking.id, BookingAction.ACCEPT, ADMIN)

        moved = booking_service.reschedule(booking.id, utc_today() + timedelta(days=3), NEW_SLOT, ADMIN)

        assert moved.status == "confirmed"
        assert moved.is_rescheduled is True

    def test_reschedule_to_same_slot_is_noop(self, booking_service, make_booking, notifications):
        booking = make_booking()

        same = booking_service.reschedule(booking.id, booking.scheduled_date, booking.scheduled_time, CUSTOMER)

        assert same.reschedule_count == 0
        assert booking_service.list_reschedules(booking.id, ADMIN) == []
        assert "booking.rescheduled" not in notifications.event_types()

    def test_reschedule_into_past_rejected(self, booking_service, make_booking):
        booking = make_booking()

        with pytest.raises(ValidationException) as exc_info:
            booking_service.reschedule(booking.id, utc_today() - timedelta(days=1), NEW_SLOT, CUSTOMER)

        assert exc_info.value.code == "DATE_IN_PAST"

    def test_reschedule_beyond_horizon_rejected(self, booking_service, make_booking):
        booking = make_booking()

        with pytest.raises(ValidationException) as exc_info:
            booking_service.reschedule(booking.id, utc_today() + timedelta(days=91), NEW_SLOT, CUSTOMER)

        assert exc_info.value.code == "DATE_OUT_OF_RANGE"

    def test_reschedule_blank_time_rejected(self, booking_service, make_booking):
        booking = make_booking()

        with pytest.raises(ValidationException):
            booking_service.reschedule(booking.id, utc_today() + timedelta(days=3), "  ", CUSTOMER)

    def test_reschedule_cancelled_booking_conflicts(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        with pytest.raises(ConflictException):
            booking_service.reschedule(booking.id, utc_today() + timedelta(days=3), NEW_SLOT, CUSTOMER)

    def test_cancelled_booking_is_not_rescheduled_even_if_moved_before(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.reschedule(booking.id, utc_today() + timedelta(days=4), NEW_SLOT, CUSTOMER)

        cancelled = booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        assert cancelled.reschedule_count == 1
        assert cancelled.is_rescheduled is False

    def test_reactivation_starts_a_fresh_cycle(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.reschedule(booking.id, utc_today() + timedelta(days=4), NEW_SLOT, CUSTOMER)
        booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        reactivated = booking_service.transition(booking.id, BookingAction.REACTIVATE, ADMIN)

        assert reactivated.reschedule_count == 0
        assert reactivated.is_rescheduled is False
        assert reactivated.scheduled_time == NEW_SLOT
        assert len(booking_service.list_reschedules(booking.id, ADMIN)) == 1

    @pytest.mark.parametrize("actor", [OTHER_CUSTOMER, TECHNICIAN])
    def test_reschedule_forbidden(self, booking_service, make_booking, actor):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.reschedule(booking.id, utc_today() + timedelta(days=3), NEW_SLOT, actor)


class TestAssignTechnician:
    def test_assign_notifies_technician(self, booking_service, make_booking, notifications):
        booking = make_booking()

        assigned = booking_service.assign_technician(booking.id, TECHNICIAN.id, "Ravi", ADMIN)

        assert assigned.technician_id == TECHNICIAN.id
        assert assigned.technician_name == "Ravi"
        assert assigned.status == "pending"
        message = notifications.messages[-1]
        assert message.event_type == "booking.technician_assigned"
        assert message.recipient_role == "technician"

    def test_reassigning_same_technician_is_noop(self, booking_service, make_booking, notifications):
        booking = make_booking()
        booking_service.assign_technician(booking.id, TECHNICIAN.id, "Ravi", ADMIN)

        booking_service.assign_technician(booking.id, TECHNICIAN.id, "Ravi", ADMIN)

        assert notifications.event_types().count("booking.technician_assigned") == 1

    def test_cannot_assign_to_terminal_booking(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        with pytest.raises(ConflictException):
            booking_service.assign_technician(booking.id, TECHNICIAN.id, None, ADMIN)

    def test_blank_technician_rejected(self, booking_service, make_booking):
        booking = make_booking()

        with pytest.raises(ValidationException):
            booking_service.assign_technician(booking.id, " ", None, ADMIN)


class TestRecordPayment:
    def test_paid_result_is_stored_with_references(self, booking_service, make_booking):
        booking = make_booking()

        paid = booking_service.record_payment(
            booking.id, PaymentResult(status="paid", payment_id="pay_123", order_id="order_9"), SYSTEM
        )

        assert paid.payment_status == "paid"
        assert paid.payment_id == "pay_123"
        assert paid.order_id == "order_9"
        assert paid.status == "pending"

    def test_failed_then_paid(self, booking_service, make_booking):
        booking = make_booking()

        assert booking_service.record_payment(booking.id, PaymentResult(status="failed"), SYSTEM).payment_status == "failed"
        assert booking_service.record_payment(booking.id, PaymentResult(status="paid"), SYSTEM).payment_status == "paid"

    def test_repeated_result_is_noop(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.record_payment(booking.id, PaymentResult(status="paid", payment_id="pay_1"), SYSTEM)

        again = booking_service.record_payment(booking.id, PaymentResult(status="paid", payment_id="pay_2"), SYSTEM)

        assert again.payment_status == "paid"
        assert again.payment_id == "pay_1"

    @pytest.mark.parametrize(
        "first, second",
        [("paid", "failed"), ("failed", "refunded")],
    )
    def test_illegal_payment_sequence_conflicts(self, booking_service, make_booking, first, second):
        booking = make_booking()
        booking_service.record_payment(booking.id, PaymentResult(status=first), SYSTEM)

        with pytest.raises(ConflictException) as exc_info:
            booking_service.record_payment(booking.id, PaymentResult(status=second), SYSTEM)

        assert exc_info.value.code == "INVALID_PAYMENT_TRANSITION"

    def test_cancelling_paid_booking_owes_refund(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.record_payment(booking.id, PaymentResult(status="paid"), SYSTEM)

        cancelled = booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)
        assert cancelled.payment_status == "refund_pending"

        refunded = booking_service.record_payment(booking.id, PaymentResult(status="refunded"), SYSTEM)
        assert refunded.payment_status == "refunded"
        assert refunded.status == "cancelled"

    def test_reactivation_restores_paid(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.record_payment(booking.id, PaymentResult(status="paid"), SYSTEM)
        booking_service.transition(booking.id, BookingAction.REJECT, ADMIN)

        reactivated = booking_service.transition(booking.id, BookingAction.REACTIVATE, ADMIN)

        assert reactivated.payment_status == "paid"

    def test_late_payment_on_cancelled_booking_becomes_refund_pending(self, booking_service, make_booking):
        booking = make_booking()
        booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        late = booking_service.record_payment(booking.id, PaymentResult(status="paid"), SYSTEM)
        assert late.payment_status == "refund_pending"

        replay = booking_service.record_payment(booking.id, PaymentResult(status="paid"), SYSTEM)
        assert replay.payment_status == "refund_pending"

    def test_cancelling_unpaid_booking_leaves_payment_alone(self, booking_service, make_booking):
        booking = make_booking()

        cancelled = booking_service.transition(booking.id, BookingAction.CANCEL, CUSTOMER)

        assert cancelled.payment_status == "pending"

    @pytest.mark.parametrize("actor", [CUSTOMER, TECHNICIAN])
    def test_only_gateway_or_admin_records_payment(self, booking_service, make_booking, actor):
        booking = make_booking()

        with pytest.raises(ForbiddenException):
            booking_service.record_payment(booking.id, PaymentResult(status="paid"), actor)

        assert booking_service.record_payment(booking.id, PaymentResult(status="paid"), ADMIN).payment_status == "paid"
