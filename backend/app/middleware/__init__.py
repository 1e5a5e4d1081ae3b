"""HTTP middleware for the booking API."""

from .prometheus_middleware import PrometheusMiddleware
from .request_context import RequestContextMiddleware

__all__ = ["PrometheusMiddleware", "RequestContextMiddleware"]
