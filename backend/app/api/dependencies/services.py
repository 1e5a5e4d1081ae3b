# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.notification_provider import LoggingNotificationProvider
from ...services.notification_service import NotificationService
from ...services.pricing_service import PricingService
from .database import get_db

_default_provider = LoggingNotificationProvider()


def get_notification_service() -> NotificationService:
    """Get the notification trigger backed by the default provider."""
    return NotificationService(_default_provider)


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    return PricingService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
    pricing_service: PricingService = Depends(get_pricing_service),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        notification_service: Notification trigger for lifecycle events
        pricing_service: Price resolution against active offers

    Returns:
        BookingService instance
    """
    return BookingService(db, notification_service, pricing_service=pricing_service)
