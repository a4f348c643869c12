# backend/modules/pos/services/sync_metrics.py

from prometheus_client import Counter, Histogram, Gauge


# Outbound sync counters
pos_sync_attempts_total = Counter(
    "pos_sync_attempts_total",
    "Total number of POS sync task attempts",
    ["kind", "pos_type"],
)

pos_sync_outcomes_total = Counter(
    "pos_sync_outcomes_total",
    "POS sync task outcomes",
    ["kind", "pos_type", "outcome"],
)

pos_sync_exhausted_total = Counter(
    "pos_sync_exhausted_total",
    "POS sync tasks that gave up after their last attempt",
    ["kind", "pos_type"],
)

pos_request_duration = Histogram(
    "pos_request_duration_seconds",
    "POS gateway operation duration",
    ["pos_type", "operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 120.0),
)

pos_connection_healthy = Gauge(
    "pos_connection_healthy",
    "POS connection health as last recorded (1=healthy, 0=cooling down)",
    ["pos_type", "restaurant_id"],
)

# Inbound webhook counters
webhook_received_total = Counter(
    "payment_webhook_received_total",
    "Total number of payment webhooks received",
    ["gateway"],
)

webhook_outcomes_total = Counter(
    "payment_webhook_outcomes_total",
    "Payment webhook outcomes",
    ["gateway", "outcome"],
)

webhook_processing_duration = Histogram(
    "payment_webhook_processing_duration_seconds",
    "Payment webhook processing duration",
    ["gateway"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


class SyncMetrics:
    """Helper class for recording sync and webhook metrics"""

    @staticmethod
    def record_attempt(kind: str, pos_type: str):
        pos_sync_attempts_total.labels(kind=kind, pos_type=pos_type).inc()

    @staticmethod
    def record_outcome(kind: str, pos_type: str, outcome: str):
        pos_sync_outcomes_total.labels(kind=kind, pos_type=pos_type, outcome=outcome).inc()

    @staticmethod
    def record_exhausted(kind: str, pos_type: str):
        pos_sync_exhausted_total.labels(kind=kind, pos_type=pos_type).inc()

    @staticmethod
    def observe_request(pos_type: str, operation: str, duration: float):
        pos_request_duration.labels(pos_type=pos_type, operation=operation).observe(duration)

    @staticmethod
    def set_connection_health(pos_type: str, restaurant_id, healthy: bool):
        pos_connection_healthy.labels(
            pos_type=pos_type, restaurant_id=str(restaurant_id)
        ).set(1 if healthy else 0)

    @staticmethod
    def record_webhook(gateway: str, outcome: str, duration: float):
        webhook_received_total.labels(gateway=gateway).inc()
        webhook_outcomes_total.labels(gateway=gateway, outcome=outcome).inc()
        webhook_processing_duration.labels(gateway=gateway).observe(duration)
