"""
Prometheus metrics for the booking engine.

Service operation timings come from the @measure_operation decorator; the
domain counters below track reservation, cancellation and refund outcomes.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests can import this module repeatedly
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "baybook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "baybook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "baybook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

reservations_total = Counter(
    "baybook_reservations_total",
    "Reservation attempts by outcome",
    ["outcome"],  # reserved | slot_unavailable | hold_conflict
    registry=REGISTRY,
)

reservations_expired_total = Counter(
    "baybook_reservations_expired_total",
    "Reservations moved to expired",
    ["path"],  # lazy | sweep
    registry=REGISTRY,
)

cancellations_total = Counter(
    "baybook_cancellations_total",
    "Committed cancellations",
    ["initiator"],
    registry=REGISTRY,
)

refund_failures_total = Counter(
    "baybook_refund_failures_total",
    "Refunds that failed after the cancellation committed",
    ["initiator"],
    registry=REGISTRY,
)

side_effect_failures_total = Counter(
    "baybook_side_effect_failures_total",
    "Best-effort notifications that raised",
    ["effect"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _lock: Lock = Lock()

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
            service: Service name (e.g., 'BookingService')
            operation: Operation name (e.g., 'reserve_booking')
            duration: Operation duration in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_reservation(outcome: str) -> None:
        reservations_total.labels(outcome=outcome).inc()

    @staticmethod
    def inc_reservations_expired(path: str, count: int = 1) -> None:
        if count > 0:
            reservations_expired_total.labels(path=path).inc(count)

    @staticmethod
    def inc_cancellation(initiator: str) -> None:
        cancellations_total.labels(initiator=initiator).inc()

    @staticmethod
    def inc_refund_failure(initiator: str) -> None:
        refund_failures_total.labels(initiator=initiator).inc()

    @staticmethod
    def inc_side_effect_failure(effect: str) -> None:
        side_effect_failures_total.labels(effect=effect).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate metrics in Prometheus exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
