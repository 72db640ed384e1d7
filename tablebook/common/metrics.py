"""Prometheus metric definitions for the booking API."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
checkout_sessions_total = Counter(
    "checkout_sessions_total",
    "Checkout session requests by outcome",
    ["service", "outcome"],
)
holds_placed_total = Counter("holds_placed_total", "Hold rows inserted", ["service"])
hold_conflicts_total = Counter(
    "hold_conflicts_total",
    "Hold placements refused because of an overlapping hold or booking",
    ["service", "reason"],
)
expired_holds_purged_total = Counter("expired_holds_purged_total", "Expired hold rows deleted", ["service"])
webhook_events_total = Counter(
    "webhook_events_total",
    "Payment provider webhook deliveries by outcome",
    ["service", "outcome"],
)
duplicate_events_skipped_total = Counter(
    "duplicate_events_skipped_total",
    "Webhook deliveries skipped by the idempotency ledger",
    ["service", "event_type"],
)
bookings_created_total = Counter("bookings_created_total", "Booking rows inserted", ["service", "source"])
partial_fulfillment_total = Counter(
    "partial_fulfillment_total",
    "Paid checkouts where at least one table could not be booked",
    ["service"],
)
best_effort_failures_total = Counter(
    "best_effort_failures_total",
    "Failures of best-effort side effects (tracking, opt-in, notifications)",
    ["service", "step"],
)
stalled_webhook_events_total = Counter(
    "stalled_webhook_events_total",
    "Redelivered webhook events whose ledger row never reached completed",
    ["service"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
