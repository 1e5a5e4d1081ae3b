# backend/app/services/notification_service.py
"""
Notification trigger for booking lifecycle events.

Every committed booking change produces exactly one message. Delivery is
best-effort: the booking change has already been committed when dispatch
runs, so provider failures are logged and counted, never raised.
"""

import logging
import time
from typing import Any, Optional, Union

from ..core.config import settings
from ..core.enums import ActorRole, RecipientRole
from ..events.booking_events import (
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    TechnicianAssigned,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from .notification_provider import (
    LoggingNotificationProvider,
    NotificationMessage,
    NotificationProvider,
)

logger = logging.getLogger(__name__)

BookingEvent = Union[BookingCreated, BookingStatusChanged, BookingRescheduled, TechnicianAssigned]


def recipient_for(event: BookingEvent) -> RecipientRole:
    """
    Decide who hears about an event.

    Cancellations and customer-initiated reschedules go to the other party;
    everything an admin does to a booking goes to its customer.
    """
    if isinstance(event, BookingCreated):
        return RecipientRole.ADMIN
    if isinstance(event, TechnicianAssigned):
        return RecipientRole.TECHNICIAN
    if isinstance(event, BookingRescheduled):
        if event.actor_role == ActorRole.CUSTOMER.value:
            return RecipientRole.ADMIN
        return RecipientRole.CUSTOMER
    if event.action == "cancel" and event.actor_role == ActorRole.CUSTOMER.value:
        return RecipientRole.ADMIN
    return RecipientRole.CUSTOMER


class NotificationService:
    """Turns booking events into messages and hands them to a provider."""

    def __init__(self, provider: Optional[NotificationProvider] = None, enabled: Optional[bool] = None):
        self.provider: NotificationProvider = provider or LoggingNotificationProvider()
        self.enabled = settings.notifications_enabled if enabled is None else enabled

    def build_message(self, event: BookingEvent) -> NotificationMessage:
        payload: dict[str, Any] = event.to_dict()
        payload.setdefault("from_status", event.from_status)
        payload.setdefault("to_status", event.to_status)
        return NotificationMessage(
            booking_id=event.booking_id,
            event_type=event.event_type,
            recipient_role=recipient_for(event).value,
            payload=payload,
        )

    def dispatch(self, event: BookingEvent) -> Optional[NotificationMessage]:
        """Send one notification; returns the message on success, None otherwise."""
        event_type = event.event_type
        if not self.enabled:
            prometheus_metrics.record_notification_outcome(event_type, "skipped")
            return None

        start = time.perf_counter()
        try:
            message = self.build_message(event)
            self.provider.send(message)
        except Exception as exc:
            logger.error(
                "Notification %s for booking %s failed: %s",
                event_type,
                event.booking_id,
                exc,
                exc_info=True,
            )
            prometheus_metrics.record_notification_outcome(event_type, "failed")
            return None
        finally:
            prometheus_metrics.observe_notification_dispatch(event_type, time.perf_counter() - start)

        prometheus_metrics.record_notification_outcome(event_type, "sent")
        return message
