"""Configuration loading utilities for messenger-gateway."""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from messenger_gateway.config.schema import GatewayConfig
from messenger_gateway.errors import ConfigError


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".messenger-gateway" / "config.json"


def load_config(config_path: Path | None = None) -> GatewayConfig:
    """
    Load configuration from file, environment, or defaults.

    Values from the JSON file are applied on top of environment overrides.
    A missing or unreadable file falls back to environment + defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.

    Raises:
        ConfigError: if the resulting configuration fails validation.
    """
    path = config_path or get_config_path()
    data: dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, dict):
                data = convert_keys(raw)
            else:
                logger.warning(f"Ignoring config at {path}: top-level value is not an object")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config from {path}: {e}; using environment and defaults")

    try:
        return GatewayConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_config(config: GatewayConfig, config_path: Path | None = None) -> None:
    """Save configuration to file in camelCase format."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = convert_to_camel(config.model_dump())
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
