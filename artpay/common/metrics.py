"""Prometheus metric definitions for the payments service."""

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
order_intents_created_total = Counter(
    "order_intents_created_total",
    "Gateway order intents minted",
    ["service"],
)
order_intents_failed_total = Counter(
    "order_intents_failed_total",
    "Gateway order intent failures",
    ["service", "reason"],
)
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Payment gateway call latency seconds",
    ["service", "operation"],
)
signature_verifications_total = Counter(
    "signature_verifications_total",
    "Payment signature verifications",
    ["service", "outcome"],
)
orders_recorded_total = Counter("orders_recorded_total", "Order records written", ["service"])
duplicate_payments_total = Counter(
    "duplicate_payments_total",
    "Order writes rejected because the payment id was already recorded",
    ["service"],
)
order_record_failures_total = Counter(
    "order_record_failures_total",
    "Order writes that failed after a successful charge",
    ["service"],
)
order_transitions_total = Counter(
    "order_transitions_total",
    "Order state transitions applied",
    ["service", "field", "to_state"],
)
rate_limited_total = Counter("rate_limited_total", "Requests rejected by the rate limiter", ["service"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
