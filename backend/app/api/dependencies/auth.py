# backend/app/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream (gateway / session layer), which forwards
the verified identity as ``X-Actor-Id`` / ``X-Actor-Role`` (and optionally
``X-Actor-Name``). This module only turns those headers into an Actor and
guards admin-only routers.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from ...core.constants import ACTOR_ID_HEADER, ACTOR_NAME_HEADER, ACTOR_ROLE_HEADER
from ...core.enums import ActorRole
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...core.request_context import set_actor
from ...services.booking_permissions import Actor

logger = logging.getLogger(__name__)


async def get_current_actor(
    actor_id: Optional[str] = Header(None, alias=ACTOR_ID_HEADER),
    actor_role: Optional[str] = Header(None, alias=ACTOR_ROLE_HEADER),
    actor_name: Optional[str] = Header(None, alias=ACTOR_NAME_HEADER),
) -> Actor:
    """
    Resolve the authenticated caller.

    Raises:
        HTTPException 401: If the identity headers are missing or the role is unknown
    """
    actor_id = (actor_id or "").strip()
    if not actor_id or not actor_role:
        raise UnauthorizedException(
            "Missing caller identity", code="MISSING_IDENTITY"
        ).to_http_exception()

    try:
        role = ActorRole(actor_role.strip().lower())
    except ValueError:
        logger.warning("Rejected unknown actor role %r", actor_role)
        raise UnauthorizedException(
            f"Unknown actor role '{actor_role}'", code="INVALID_ROLE"
        ).to_http_exception()

    set_actor(role.value, actor_id)
    return Actor(id=actor_id, role=role, name=(actor_name or "").strip() or None)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Guard for admin-only routers."""
    if not actor.is_admin:
        raise ForbiddenException(
            "Administrator access required", code="ADMIN_REQUIRED"
        ).to_http_exception()
    return actor
