"""
Prometheus metrics for monitoring calendar syncs, feed fetches and booking writes.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total feed requests)
    - Histogram: Observations bucketed by value (e.g., fetch latency)

Labels never include property ids or feed URLs to keep cardinality bounded.

Example:
    >>> from sync_ics.metrics import sync_duration, bookings_written
    >>> with sync_duration.time():
    ...     report = orchestrator.sync(property_id)
    ...     bookings_written.labels(platform="airbnb", outcome="inserted").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Sync Metrics
# =============================================================================

sync_runs = Counter(
    "ics_sync_runs_total",
    "Total number of property sync runs",
    ["outcome"],
)
"""
Counter for whole sync runs.

Labels:
    outcome: success (every source succeeded), partial or failed (no source succeeded)
"""

sync_duration = Histogram(
    "ics_sync_duration_seconds",
    "Wall-clock duration of property sync runs in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, float("inf")),
)

source_syncs = Counter(
    "ics_source_syncs_total",
    "Total number of per-source pipelines by terminal state",
    ["platform", "state"],
)
"""
Counter for per-source pipeline results.

Labels:
    platform: airbnb, vrbo, booking or other
    state: success, partial or failed
"""

# =============================================================================
# Feed Metrics
# =============================================================================

feed_requests = Counter(
    "ics_feed_requests_total",
    "Total calendar feed HTTP requests",
    ["platform", "status_code"],
)
"""
Counter for feed requests.

Labels:
    platform: Feed platform
    status_code: HTTP status code, or "error" when no response was received
"""

feed_latency = Histogram(
    "ics_feed_latency_seconds",
    "Calendar feed request latency in seconds",
    ["platform"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# =============================================================================
# Booking Metrics
# =============================================================================

bookings_written = Counter(
    "ics_bookings_reconciled_total",
    "Total feed bookings reconciled against the store",
    ["platform", "outcome"],
)
"""
Counter for reconciled bookings.

Labels:
    platform: Feed platform
    outcome: inserted, updated, unchanged or rejected
"""

events_skipped = Counter(
    "ics_events_skipped_total",
    "Feed events skipped before reconciliation",
    ["platform", "reason"],
)
"""
Counter for events that never reached the store.

Labels:
    platform: Feed platform
    reason: placeholder (blocked/unavailable marker) or malformed
"""
