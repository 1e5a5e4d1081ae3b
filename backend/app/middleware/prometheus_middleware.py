"""
Prometheus metrics middleware for HTTP request tracking.

This middleware integrates with the prometheus_metrics module to
track HTTP request duration and status codes.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")
_BOOKING_CODE_SEGMENT = re.compile(r"^[A-Z]{1,8}\d+$")


def normalize_path(raw_path: str) -> str:
    """Collapse ids and booking codes so the endpoint label stays low-cardinality."""
    segments = []
    for segment in raw_path.split("/"):
        if _ULID_SEGMENT.match(segment):
            segments.append(":id")
        elif _BOOKING_CODE_SEGMENT.match(segment):
            segments.append(":code")
        else:
            segments.append(segment)
    return "/".join(segments)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics collection for the metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = normalize_path(request.url.path)
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            prometheus_metrics.record_http_request(
                method=method,
                endpoint=path,
                duration=time.perf_counter() - start_time,
                status_code=status_code,
            )
