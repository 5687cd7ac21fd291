"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, not_found, invalid_state, capacity_exceeded, conflict
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Booking cancellations',
    ['status']  # success, not_found, invalid_state, too_late
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Waitlist metrics
waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Users promoted from a waitlist into a confirmed booking'
)

waitlist_changes = Counter(
    'waitlist_changes_total',
    'Waitlist joins and leaves',
    ['action']  # join, leave
)

# Notification metrics
notifications_dispatched = Counter(
    'notifications_dispatched_total',
    'Notification signals handed to sinks',
    ['kind', 'result']  # delivered, failed
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Transactions retried after a transient storage failure'
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


def record_booking_attempt(status: str):
    """Record booking attempt outcome."""
    booking_attempts.labels(status=status).inc()


def record_cancellation(status: str):
    booking_cancellations.labels(status=status).inc()


def record_waitlist_change(action: str):
    waitlist_changes.labels(action=action).inc()


def record_notification(kind: str, delivered: bool):
    result = "delivered" if delivered else "failed"
    notifications_dispatched.labels(kind=kind, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
