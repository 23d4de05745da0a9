# stalk/monitoring/prometheus_metrics.py
"""
Prometheus metrics for the sTalk backend.

Service timings come from the @measure_operation decorator; realtime and
push counters are recorded by the delivery layer and push fanout.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry so tests and multiple app instances do not collide with defaults
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "stalk_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "stalk_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "stalk_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

push_attempts_total = Counter(
    "stalk_push_attempts_total",
    "Web push delivery attempts by outcome",
    ["outcome"],  # delivered, gone, failed
    registry=REGISTRY,
)

push_subscriptions_pruned_total = Counter(
    "stalk_push_subscriptions_pruned_total",
    "Push subscriptions deleted after the provider reported them gone",
    registry=REGISTRY,
)

realtime_connections = Gauge(
    "stalk_realtime_connections",
    "Currently open realtime connections",
    registry=REGISTRY,
)

realtime_online_users = Gauge(
    "stalk_realtime_online_users",
    "Users with at least one live connection",
    registry=REGISTRY,
)

realtime_events_total = Counter(
    "stalk_realtime_events_total",
    "Realtime events enqueued to connections",
    ["event"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Facade over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'MessageService')
            operation: Operation/method name (e.g., 'send_message')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_push_attempt(outcome: str) -> None:
        push_attempts_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_push_pruned(count: int) -> None:
        if count > 0:
            push_subscriptions_pruned_total.inc(count)

    @staticmethod
    def record_realtime_event(event: str, deliveries: int) -> None:
        if deliveries > 0:
            realtime_events_total.labels(event=event).inc(deliveries)

    @staticmethod
    def set_realtime_gauges(connections: int, online_users: int) -> None:
        realtime_connections.set(connections)
        realtime_online_users.set(online_users)

    @staticmethod
    def get_metrics() -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
