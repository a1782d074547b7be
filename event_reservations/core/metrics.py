"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['outcome']  # success, already_booked, insufficient_capacity, not_bookable, busy, error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled and spots released',
)

released_spots = Counter(
    'released_spots_total',
    'Spots returned to events by cancellation',
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking lifecycle transitions',
    ['from_status', 'to_status']
)

# Database metrics
lock_timeouts = Counter(
    'db_lock_timeouts_total',
    'Transactions aborted because a row lock could not be acquired in time'
)

storage_failures = Counter(
    'db_storage_failures_total',
    'Unexpected persistence errors'
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


def record_reservation(outcome: str):
    """Record reservation attempt. Outcome: success, already_booked, insufficient_capacity, ..."""
    reservation_attempts.labels(outcome=outcome).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_cancellation(spots: int):
    cancellations.inc()
    released_spots.inc(spots)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
