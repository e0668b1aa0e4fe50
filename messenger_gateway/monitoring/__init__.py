"""Runtime metrics for messenger-gateway."""

from messenger_gateway.monitoring.metrics import GatewayMetrics

__all__ = ["GatewayMetrics"]
