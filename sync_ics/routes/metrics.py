"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP ics_sync_runs_total Total number of property sync runs
        # TYPE ics_sync_runs_total counter
        ics_sync_runs_total{outcome="success"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """
    Expose sync, feed and booking metrics in Prometheus text format.

    Returns:
        Response: Metrics with Content-Type: text/plain

    Example Response:
        # HELP ics_feed_latency_seconds Calendar feed request latency in seconds
        # TYPE ics_feed_latency_seconds histogram
        ics_feed_latency_seconds_bucket{le="0.5",platform="airbnb"} 10.0
        ...
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
