"""
Prometheus metrics endpoint for monitoring infrastructure.

This is a PUBLIC endpoint (no identity required) following standard
Prometheus practices. It exposes the service operation timings collected
by @measure_operation plus the booking lifecycle counters.
"""

from fastapi import APIRouter, Response

from app.monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
