"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# RSVP metrics
rsvp_requests = Counter(
    'rsvp_requests_total',
    'Total RSVP requests',
    ['action', 'outcome']  # join/leave; admitted, left, event_not_found, ...
)

rsvp_latency = Histogram(
    'rsvp_latency_seconds',
    'RSVP latency including the diagnostic read on rejection',
    ['action'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Store metrics
store_errors = Counter(
    'membership_store_errors_total',
    'Membership store infrastructure failures',
    ['operation']  # create, conditional_add, remove, read, drop
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_rsvp(action: str, outcome: str):
    """Record RSVP outcome. Action: join, leave"""
    rsvp_requests.labels(action=action, outcome=outcome).inc()

def record_store_error(operation: str):
    store_errors.labels(operation=operation).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
