"""Application-wide constants for the service booking platform."""

from __future__ import annotations

BRAND_NAME = "FixMate"

API_TITLE = f"{BRAND_NAME} Booking API"
API_VERSION = "1.0.0"
API_DESCRIPTION = (
    "Booking lifecycle core for home-appliance repair and installation services: "
    "price resolution, booking creation and actor-scoped status transitions."
)

# Text constraints
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 500
MAX_TIME_SLOT_LENGTH = 64

# Query limits
DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 200

# Identity headers set by the upstream auth layer
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_NAME_HEADER = "X-Actor-Name"
REQUEST_ID_HEADER = "X-Request-ID"

# Money
CURRENCY = "INR"
