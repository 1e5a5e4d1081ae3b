"""HTTP contract of /api/v1/bookings: status codes, error envelope and actor scoping."""

from datetime import timedelta
from decimal import Decimal

from app.core.timezone_utils import utc_today
from app.core.ulid_helper import generate_ulid
from booking_support import (
    ADMIN,
    CATEGORY_ID,
    CUSTOMER,
    OTHER_CUSTOMER,
    SERVICE_ID,
    SYSTEM,
    TECHNICIAN,
)

BOOKINGS = "/api/v1/bookings"


def _payload(**overrides):
    payload = {
        "customer": {
            "name": "Asha Menon",
            "phone": "+91 98450 12345",
            "email": "asha@example.com",
            "address": "12 MG Road, Bengaluru",
        },
        "service_id": SERVICE_ID,
        "service_name": "AC Gas Refill",
        "category_id": CATEGORY_ID,
        "listed_price": "599",
        "scheduled_date": (utc_today() + timedelta(days=2)).isoformat(),
        "scheduled_time": "10:00 AM - 12:00 PM",
    }
    payload.update(overrides)
    return payload


def _create(client, headers_for, actor=CUSTOMER, **overrides):
    response = client.post(BOOKINGS, json=_payload(**overrides), headers=headers_for(actor))
    assert response.status_code == 201, response.text
    return response.json()


class TestIdentity:
    def test_missing_identity_is_401(self, client):
        response = client.get(BOOKINGS)

        assert response.status_code == 401
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "MISSING_IDENTITY"

    def test_unknown_role_is_401(self, client):
        response = client.get(BOOKINGS, headers={"X-Actor-Id": "x", "X-Actor-Role": "superuser"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_ROLE"


class TestCreate:
    def test_create_freezes_discounted_price(self, client, headers_for, discount_factory, notifications):
        discount_factory()

        body = _create(client, headers_for)

        assert body["booking_code"] == "BK1001"
        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["customer_id"] == CUSTOMER.id
        assert Decimal(body["listed_price"]) == Decimal("599")
        assert Decimal(body["discount_amount"]) == Decimal("60")
        assert Decimal(body["amount"]) == Decimal("539")
        assert body["is_rescheduled"] is False
        assert notifications.event_types() == ["booking.created"]

    def test_past_date_is_400(self, client, headers_for):
        response = client.post(
            BOOKINGS,
            json=_payload(scheduled_date=(utc_today() - timedelta(days=1)).isoformat()),
            headers=headers_for(CUSTOMER),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DATE_IN_PAST"

    def test_blank_required_field_is_400(self, client, headers_for):
        response = client.post(BOOKINGS, json=_payload(service_name="   "), headers=headers_for(CUSTOMER))

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_FIELD"

    def test_unknown_field_is_422(self, client, headers_for):
        response = client.post(BOOKINGS, json=_payload(amount="1"), headers=headers_for(CUSTOMER))

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_technician_cannot_create(self, client, headers_for):
        response = client.post(BOOKINGS, json=_payload(), headers=headers_for(TECHNICIAN))

        assert response.status_code == 403


class TestRead:
    def test_owner_reads_by_id_and_code(self, client, headers_for):
        created = _create(client, headers_for)

        by_id = client.get(f"{BOOKINGS}/{created['id']}", headers=headers_for(CUSTOMER))
        by_code = client.get(f"{BOOKINGS}/code/{created['booking_code']}", headers=headers_for(CUSTOMER))

        assert by_id.status_code == 200
        assert by_code.json()["id"] == created["id"]

    def test_other_customer_gets_403(self, client, headers_for):
        created = _create(client, headers_for)

        response = client.get(f"{BOOKINGS}/{created['id']}", headers=headers_for(OTHER_CUSTOMER))

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_BOOKING_PARTICIPANT"

    def test_unknown_booking_is_404(self, client, headers_for):
        response = client.get(f"{BOOKINGS}/{generate_ulid()}", headers=headers_for(ADMIN))

        assert response.status_code == 404
        assert response.json()["code"] == "BOOKING_NOT_FOUND"

    def test_malformed_id_is_422(self, client, headers_for):
        response = client.get(f"{BOOKINGS}/not-a-ulid", headers=headers_for(ADMIN))

        assert response.status_code == 422

    def test_list_is_scoped_to_caller(self, client, headers_for):
        _create(client, headers_for)
        _create(client, headers_for, customer={**_payload()["customer"], "customer_id": OTHER_CUSTOMER.id}, actor=ADMIN)

        mine = client.get(BOOKINGS, headers=headers_for(CUSTOMER)).json()
        everything = client.get(BOOKINGS, headers=headers_for(ADMIN)).json()

        assert mine["count"] == 1
        assert mine["items"][0]["customer_id"] == CUSTOMER.id
        assert everything["count"] == 2


class TestActions:
    def test_cancel_twice_returns_cancelled(self, client, headers_for, notifications):
        created = _create(client, headers_for)
        url = f"{BOOKINGS}/{created['id']}/cancel"

        first = client.post(url, json={"reason": "Plans changed"}, headers=headers_for(CUSTOMER))
        second = client.post(url, headers=headers_for(CUSTOMER))

        assert first.status_code == second.status_code == 200
        assert first.json()["cancellation_reason"] == "Plans changed"
        assert second.json()["status"] == "cancelled"
        assert notifications.event_types().count("booking.cancelled") == 1

    def test_reschedule_marks_booking(self, client, headers_for):
        created = _create(client, headers_for)
        new_date = (utc_today() + timedelta(days=6)).isoformat()

        response = client.post(
            f"{BOOKINGS}/{created['id']}/reschedule",
            json={"scheduled_date": new_date, "scheduled_time": "04:00 PM - 06:00 PM"},
            headers=headers_for(CUSTOMER),
        )
        history = client.get(f"{BOOKINGS}/{created['id']}/reschedules", headers=headers_for(CUSTOMER))

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["is_rescheduled"] is True
        assert [row["new_date"] for row in history.json()] == [new_date]

    def test_full_lifecycle_with_earnings(self, client, headers_for, discount_factory):
        discount_factory()
        booking_id = _create(client, headers_for)["id"]

        client.put(
            f"/api/v1/admin/bookings/{booking_id}/technician",
            json={"technician_id": TECHNICIAN.id, "technician_name": "Ravi"},
            headers=headers_for(ADMIN),
        )
        client.post(f"/api/v1/admin/bookings/{booking_id}/accept", headers=headers_for(ADMIN))
        response = client.post(
            f"{BOOKINGS}/{booking_id}/complete",
            json={"notes": "Refilled R32"},
            headers=headers_for(TECHNICIAN),
        )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "completed"
        assert Decimal(body["admin_commission"]) == Decimal("162")
        assert Decimal(body["technician_earnings"]) == Decimal("377")
        assert body["earnings_status"] == "claimable"

    def test_complete_pending_booking_is_409(self, client, headers_for):
        booking_id = _create(client, headers_for)["id"]

        response = client.post(f"{BOOKINGS}/{booking_id}/complete", headers=headers_for(ADMIN))

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_payment_result_from_gateway(self, client, headers_for):
        booking_id = _create(client, headers_for)["id"]

        response = client.post(
            f"{BOOKINGS}/{booking_id}/payment",
            json={"status": "paid", "payment_id": "pay_42"},
            headers=headers_for(SYSTEM),
        )

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["payment_id"] == "pay_42"

    def test_customer_cannot_report_payment(self, client, headers_for):
        booking_id = _create(client, headers_for)["id"]

        response = client.post(
            f"{BOOKINGS}/{booking_id}/payment", json={"status": "paid"}, headers=headers_for(CUSTOMER)
        )

        assert response.status_code == 403


class TestRequestId:
    def test_request_id_is_echoed(self, client, headers_for):
        response = client.get(BOOKINGS, headers={**headers_for(CUSTOMER), "X-Request-ID": "req-abc"})

        assert response.headers["X-Request-ID"] == "req-abc"

    def test_request_id_is_minted_and_put_in_error_bodies(self, client):
        response = client.get(BOOKINGS)

        request_id = response.headers["X-Request-ID"]
        assert request_id
        assert response.json()["request_id"] == request_id
