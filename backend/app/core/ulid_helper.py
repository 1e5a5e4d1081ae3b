"""ULID generation helper utilities."""

from ulid import ULID

# Crockford base32, 26 characters; used to validate path ids
ULID_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())
