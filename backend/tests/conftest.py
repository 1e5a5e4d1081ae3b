# backend/tests/conftest.py
"""
Shared fixtures for the booking core tests.

Every test gets its own in-memory SQLite store, so services may commit
freely. Notifications are captured by a recording provider instead of
being logged.
"""

from datetime import timedelta
from decimal import Decimal
import os
from typing import Any, Callable, Dict

# Set before any app import so Settings picks it up
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from app.api.dependencies import get_db, get_notification_service
from app.core.enums import ActorRole
from app.core.timezone_utils import utc_now, utc_today
from app.database import build_engine, init_db
from app.main import app as fastapi_app
from app.models.discount import Discount
from app.schemas.booking import BookingCreate
from app.services.booking_permissions import Actor
from app.services.booking_service import BookingService
from app.services.notification_service import NotificationService
from app.services.pricing_service import PricingService
from booking_support import CATEGORY_ID, CUSTOMER, SERVICE_ID, RecordingProvider, actor_headers


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifications() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def notification_service(notifications) -> NotificationService:
    return NotificationService(notifications, enabled=True)


@pytest.fixture
def pricing_service(db) -> PricingService:
    return PricingService(db)


@pytest.fixture
def booking_service(db, notification_service, pricing_service) -> BookingService:
    return BookingService(db, notification_service, pricing_service=pricing_service)


@pytest.fixture
def booking_data() -> Callable[..., BookingCreate]:
    """Build a valid BookingCreate two days out; keyword overrides replace top-level fields."""

    def _build(customer: Dict[str, Any] | None = None, **overrides: Any) -> BookingCreate:
        payload: Dict[str, Any] = {
            "customer": {
                "name": "Asha Menon",
                "phone": "+91 98450 12345",
                "email": "asha@example.com",
                "address": "12 MG Road, Bengaluru",
                **(customer or {}),
            },
            "service_id": SERVICE_ID,
            "service_name": "AC Gas Refill",
            "category_id": CATEGORY_ID,
            "listed_price": Decimal("599"),
            "scheduled_date": utc_today() + timedelta(days=2),
            "scheduled_time": "10:00 AM - 12:00 PM",
        }
        payload.update(overrides)
        return BookingCreate(**payload)

    return _build


@pytest.fixture
def discount_factory(db) -> Callable[..., Discount]:
    """Insert an active 10% category offer; keyword overrides replace any column."""

    def _create(**overrides: Any) -> Discount:
        now = utc_now()
        fields: Dict[str, Any] = {
            "name": "Monsoon AC Offer",
            "category_id": CATEGORY_ID,
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=10),
            "is_active": True,
            "usage_count": 0,
        }
        fields.update(overrides)
        discount = Discount(**fields)
        db.add(discount)
        db.commit()
        return discount

    return _create


@pytest.fixture
def make_booking(booking_service, booking_data):
    """Create a pending booking as ``actor`` (the default customer unless given)."""

    def _make(actor: Actor = CUSTOMER, **overrides: Any):
        customer = overrides.pop("customer", None)
        if actor.role is not ActorRole.CUSTOMER and customer is None:
            customer = {"customer_id": CUSTOMER.id}
        return booking_service.create_booking(booking_data(customer=customer, **overrides), actor)

    return _make


@pytest.fixture
def headers_for() -> Callable[[Actor], Dict[str, str]]:
    return actor_headers


@pytest.fixture
def client(session_factory, notification_service) -> TestClient:
    """TestClient bound to the per-test store. Lifespan is not run, so init_db never touches a file."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_notification_service] = lambda: notification_service
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()
