"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Admission metrics
admission_decisions = Counter(
    'admission_decisions_total',
    'Booking admission decisions',
    ['result']  # ADMITTED or the rejection reason
)

admission_latency = Histogram(
    'admission_check_latency_seconds',
    'Snapshot fetch plus admission check latency',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25]
)

# Lifecycle metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking status transition attempts',
    ['action', 'result']  # approve/reject/cancel, ok or error code
)

# Storage metrics
commit_conflicts = Counter(
    'booking_commit_conflicts_total',
    'Writes rejected by the storage layer after passing admission'
)

storage_errors = Counter(
    'storage_errors_total',
    'Database errors surfaced as STORAGE_UNAVAILABLE'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

submission_lock_fail_open = Gauge(
    'submission_lock_fail_open',
    'Redis submission lock state (1=failing open, 0=healthy)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_admission(result: str):
    admission_decisions.labels(result=result).inc()


def record_transition(action: str, result: str):
    booking_transitions.labels(action=action, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
