"""
Health check endpoints for monitoring and load balancer probes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies import get_db
from app.core.config import settings
from app.core.constants import API_VERSION, BRAND_NAME
from app.core.exceptions import TransientException, is_transient_store_error
from app.core.timezone_utils import utc_now
from app.schemas.main_responses import HealthLiteResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns basic health status including service info and environment.
    """
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower()}-booking-api",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=utc_now().isoformat().replace("+00:00", "Z"),
    )


@router.get("/db", response_model=HealthLiteResponse)
def database_health(db: Session = Depends(get_db)) -> HealthLiteResponse:
    """Round-trip to the booking store; 503 with Retry-After when it is unreachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        if is_transient_store_error(exc):
            raise TransientException(details={"component": "database"}).to_http_exception() from exc
        raise
    return HealthLiteResponse(status="ok")
