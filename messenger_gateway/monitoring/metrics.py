"""
Prometheus metrics for the gateway.

Every ``GatewayMetrics`` owns its own ``CollectorRegistry`` unless one is
passed in, so independent instances (tests, multiple apps) never collide.

Usage:
    metrics = GatewayMetrics()
    metrics.outbound_messages.labels(kind="assistant", status="success").inc()
    metrics.dispatch_failures.inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

DEFAULT_PREFIX = "messenger_gateway_"


class GatewayMetrics:
    """Counters and histograms emitted by the webhook pipeline."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, registry: CollectorRegistry | None = None):
        self.prefix = prefix
        self.registry = registry or CollectorRegistry()

        self.requests = Counter(
            f"{prefix}requests",
            "Total number of webhook requests processed",
            labelnames=["method", "status"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            f"{prefix}request_duration_seconds",
            "Webhook request duration in seconds",
            labelnames=["method", "status"],
            buckets=(0.1, 0.25, 0.5, 1, 2, 5),
            registry=self.registry,
        )
        self.dispatch_failures = Counter(
            f"{prefix}dispatch_failures",
            "Total number of failures when dispatching events to AG-UI",
            registry=self.registry,
        )
        self.outbound_messages = Counter(
            f"{prefix}outbound_messages",
            "Total Messenger messages and sender actions sent by the gateway",
            labelnames=["kind", "status"],
            registry=self.registry,
        )
        self.slash_commands = Counter(
            f"{prefix}slash_commands",
            "Slash commands handled by the gateway",
            labelnames=["command", "status"],
            registry=self.registry,
        )

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a sample (e.g. ``"outbound_messages_total"``), 0.0 if unset."""
        value = self.registry.get_sample_value(f"{self.prefix}{name}", labels or {})
        return float(value or 0.0)

    def render(self) -> tuple[bytes, str]:
        """Exposition payload and content type for a ``/metrics`` endpoint."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
