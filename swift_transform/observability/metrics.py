"""
Prometheus metrics collection for swift-transform-pipeline

Metrics live on a private registry. Nothing here starts an HTTP server;
callers that want the text exposition use generate_metrics().
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# TRANSFORMATION METRICS
# =======================

transformations_total = Counter(
    name="swift_transformations_total",
    documentation="Total number of transformation attempts by type and resulting status",
    labelnames=["transformation_type", "status"],
    registry=REGISTRY,
)

transformation_duration_seconds = Histogram(
    name="swift_transformation_duration_seconds",
    documentation="Time spent in the transformation engine in seconds",
    labelnames=["transformation_type"],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
    registry=REGISTRY,
)

publish_total = Counter(
    name="swift_publish_total",
    documentation="Total number of queue publications",
    labelnames=["queue", "status"],  # status: success, failure
    registry=REGISTRY,
)

# =======================
# RETRY METRICS
# =======================

retries_scheduled_total = Counter(
    name="swift_retries_scheduled_total",
    documentation="Total number of retries scheduled",
    labelnames=["transformation_type"],
    registry=REGISTRY,
)

retry_outcomes_total = Counter(
    name="swift_retry_outcomes_total",
    documentation="Outcome of deferred retry attempts",
    labelnames=["transformation_type", "outcome"],  # outcome: success, rescheduled, dead_letter, error
    registry=REGISTRY,
)

dead_letters_total = Counter(
    name="swift_dead_letters_total",
    documentation="Total number of records routed to the dead-letter sink",
    labelnames=["transformation_type", "original_status"],
    registry=REGISTRY,
)

pending_retries = Gauge(
    name="swift_pending_retries",
    documentation="Number of retries waiting on the delay heap",
    registry=REGISTRY,
)

# =======================
# ENCRYPTION AND STORAGE METRICS
# =======================

encryption_operations_total = Counter(
    name="swift_encryption_operations_total",
    documentation="Total number of envelope encryption operations",
    labelnames=["operation", "outcome"],  # operation: encrypt, decrypt; outcome: success, failure, tamper
    registry=REGISTRY,
)

record_store_operations_total = Counter(
    name="swift_record_store_operations_total",
    documentation="Total number of audit record store operations",
    labelnames=["operation", "status"],  # operation: store, retrieve, list, delete
    registry=REGISTRY,
)

record_store_duration_seconds = Histogram(
    name="swift_record_store_duration_seconds",
    documentation="Time spent in audit record store operations in seconds",
    labelnames=["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


def get_sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Current value of a sample on the private registry (0.0 when never observed)."""
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class MetricsCollector:
    """
    Metrics collector for pipeline components.

    Components receive an optional collector and call it when present, so
    metrics can be switched off by passing None.
    """

    def record_transformation(self, transformation_type: str, status: str, duration_seconds: float) -> None:
        increment_counter(transformations_total, 1, transformation_type=transformation_type, status=status)
        if duration_seconds > 0:
            observe_histogram(transformation_duration_seconds, duration_seconds, transformation_type=transformation_type)

    def record_publish(self, queue: str, success: bool) -> None:
        increment_counter(publish_total, 1, queue=queue, status="success" if success else "failure")

    def record_retry_scheduled(self, transformation_type: str) -> None:
        increment_counter(retries_scheduled_total, 1, transformation_type=transformation_type)

    def record_retry_outcome(self, transformation_type: str, outcome: str) -> None:
        increment_counter(retry_outcomes_total, 1, transformation_type=transformation_type, outcome=outcome)

    def record_dead_letter(self, transformation_type: str, original_status: str) -> None:
        increment_counter(
            dead_letters_total, 1, transformation_type=transformation_type, original_status=original_status
        )

    def set_pending_retries(self, count: int) -> None:
        pending_retries.set(count)

    def record_encryption(self, operation: str, outcome: str) -> None:
        increment_counter(encryption_operations_total, 1, operation=operation, outcome=outcome)

    def record_store_operation(self, operation: str, success: bool, duration_seconds: float = 0.0) -> None:
        """
        Record an audit record store operation.

        Args:
            operation: store, retrieve, list or delete
            success: Whether the operation completed
            duration_seconds: Time taken by the operation
        """
        status = "success" if success else "failure"
        increment_counter(record_store_operations_total, 1, operation=operation, status=status)
        if duration_seconds > 0:
            observe_histogram(record_store_duration_seconds, duration_seconds, operation=operation)
