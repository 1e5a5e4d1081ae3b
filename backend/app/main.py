# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.request_context import attach_request_context_filter
from .database import init_db
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_context import RequestContextMiddleware
from .routes import prometheus
from .routes.v1 import (
    admin as admin_v1,
    bookings as bookings_v1,
    health as health_v1,
    pricing as pricing_v1,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s %(actor)s] %(message)s",
)
attach_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    init_db()

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
# Register unified error envelope handlers
register_error_handlers(app)

# Last added runs first: request id must be set before metrics and handlers log
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestContextMiddleware)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(admin_v1.router, prefix="/admin")
api_v1.include_router(pricing_v1.router, prefix="/pricing")
api_v1.include_router(health_v1.router, prefix="/health")

app.include_router(api_v1)

# Infrastructure routes (unversioned)
app.include_router(prometheus.router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {"message": f"Welcome to the {BRAND_NAME} Booking API", "version": API_VERSION, "docs": "/docs"}
