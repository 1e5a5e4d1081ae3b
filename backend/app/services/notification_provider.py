# backend/app/services/notification_provider.py
"""
Notification provider used by the booking notification trigger.

E-mail/SMS delivery lives outside the booking core; the default provider
records each message in the application log. A test-only environment flag
(`NOTIFICATION_PROVIDER_RAISE_ON`) can be used to trigger provider failures.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
import logging
import os
from typing import Any, Dict, Protocol

logger = logging.getLogger(__name__)


class NotificationProviderTemporaryError(RuntimeError):
    """Exception raised to simulate transient provider failures."""


@dataclass(frozen=True)
class NotificationMessage:
    """One outbound notification about a booking."""

    booking_id: str
    event_type: str
    recipient_role: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationProvider(Protocol):
    """Anything that can deliver a NotificationMessage."""

    def send(self, message: NotificationMessage) -> None:
        ...


def _should_raise(event_type: str, booking_id: str) -> bool:
    """Determine whether to simulate a provider failure."""
    raw = os.getenv("NOTIFICATION_PROVIDER_RAISE_ON")
    if not raw:
        return False

    tokens = {token.strip() for token in raw.split(",") if token.strip()}
    return "*" in tokens or event_type in tokens or booking_id in tokens


class LoggingNotificationProvider:
    """Default provider: writes the message to the log."""

    def send(self, message: NotificationMessage) -> None:
        if _should_raise(message.event_type, message.booking_id):
            raise NotificationProviderTemporaryError(
                f"Simulated provider failure for {message.event_type}"
            )
        logger.info(
            "notification %s -> %s: %s",
            message.event_type,
            message.recipient_role,
            json.dumps(message.payload, sort_keys=True, default=str),
        )
