"""Prometheus metrics for analytics observability.

Counters per analytical component and outcome, plus API timings.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Component counters
analyses_total = Counter(
    "analyses_total",
    "Total analytical computations",
    ["component", "outcome"],  # outcome: ok, no_data, invalid_input
)

growth_alerts_total = Counter(
    "growth_alerts_total",
    "Growth alerts produced by the alert engine",
    ["type", "severity"],
)

dose_safety_verdicts_total = Counter(
    "dose_safety_verdicts_total",
    "Dose safety verdicts computed",
    ["safe"],
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
store_fetch_duration_seconds = Histogram(
    "store_fetch_duration_seconds",
    "Duration of Store reads issued by the API layer",
    ["query"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
