"""Configuration module for messenger-gateway."""

from messenger_gateway.config.loader import get_config_path, load_config
from messenger_gateway.config.schema import GatewayConfig

__all__ = ["GatewayConfig", "load_config", "get_config_path"]
