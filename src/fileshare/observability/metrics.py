"""Prometheus metrics for fileshare.

Counters are registered on the default global registry so the built-in
process collectors are exported alongside them.

Usage::

    from fileshare.observability.metrics import SHARE_GRANTS_TOTAL

    SHARE_GRANTS_TOTAL.labels(kind="link").inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "fileshare_http_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "fileshare_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "fileshare_http_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Share lifecycle
# ---------------------------------------------------------------------------

SHARE_GRANTS_TOTAL = Counter(
    "fileshare_share_grants_total",
    "Share grants by kind (user grants include re-grants).",
    labelnames=["kind"],
    registry=REGISTRY,
)

SHARE_REVOCATIONS_TOTAL = Counter(
    "fileshare_share_revocations_total",
    "Revoke calls, by whether the share was still active.",
    labelnames=["was_active"],
    registry=REGISTRY,
)

LINK_TOKEN_COLLISIONS_TOTAL = Counter(
    "fileshare_link_token_collisions_total",
    "Link token unique-constraint conflicts that triggered a retry.",
    registry=REGISTRY,
)

EXPIRED_SHARES_SWEPT_TOTAL = Counter(
    "fileshare_expired_shares_swept_total",
    "Share rows physically removed by the expiry sweep.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Audit and ingestion
# ---------------------------------------------------------------------------

AUDIT_EVENTS_TOTAL = Counter(
    "fileshare_audit_events_total",
    "Audit entries written, by action.",
    labelnames=["action"],
    registry=REGISTRY,
)

AUDIT_WRITE_FAILURES_TOTAL = Counter(
    "fileshare_audit_write_failures_total",
    "Audit writes that failed and were dropped, by action.",
    labelnames=["action"],
    registry=REGISTRY,
)

COMPRESSION_OUTCOMES_TOTAL = Counter(
    "fileshare_compression_outcomes_total",
    "Ingestion compression decisions (skipped, kept, discarded, failed).",
    labelnames=["outcome"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
