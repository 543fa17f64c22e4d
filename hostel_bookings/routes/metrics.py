"""
Prometheus scrape endpoint for the API process.

The lifecycle scheduler runs in its own process with its own registry and
serves it on SCHEDULER_METRICS_PORT instead (see scripts/run_scheduler.py).
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
def metrics() -> Response:
    """
    Booking, payment, deposit and lock metrics in Prometheus text format.

    Example:
        hostel_booking_transitions_total{status="success",transition="confirm"} 42.0
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-store"},
    )
