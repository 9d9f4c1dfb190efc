"""Prometheus counters and histograms for payment webhook flows."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()

# Webhook deliveries by event type and completion outcome.
PAYMENT_WEBHOOK_EVENTS_TOTAL = Counter(
    "payment_webhook_events_total",
    "Payment webhook deliveries processed",
    ["event_type", "outcome"],
    registry=REGISTRY,
)

# Deliveries rejected at the signature check, before any processing.
PAYMENT_WEBHOOK_AUTH_FAILURES_TOTAL = Counter(
    "payment_webhook_auth_failures_total",
    "Payment webhook deliveries that failed signature verification",
    registry=REGISTRY,
)

ENROLLMENTS_CREATED_TOTAL = Counter(
    "enrollments_created_total",
    "Enrollments created from completed payments",
    registry=REGISTRY,
)

SERVICE_OPERATION_DURATION_SECONDS = Histogram(
    "service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation", "status"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


__all__ = [
    "REGISTRY",
    "PAYMENT_WEBHOOK_EVENTS_TOTAL",
    "PAYMENT_WEBHOOK_AUTH_FAILURES_TOTAL",
    "ENROLLMENTS_CREATED_TOTAL",
    "SERVICE_OPERATION_DURATION_SECONDS",
]
