"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from messenger_gateway.errors import ConfigError


class FacebookConfig(BaseModel):
    """Messenger app credentials and Graph API settings."""
    app_secret: str = ""
    page_access_token: str = ""
    verify_token: str = ""  # Echoed back during the GET subscription handshake
    graph_api_base_url: str = "https://graph.facebook.com"
    graph_api_version: str = "v20.0"
    default_messaging_type: Literal["RESPONSE", "UPDATE", "MESSAGE_TAG", "NON_PROMOTIONAL_SUBSCRIPTION"] = "RESPONSE"
    send_timeout_seconds: float = Field(default=10.0, gt=0)


class AguiConfig(BaseModel):
    """AG-UI agent endpoint configuration."""
    base_url: str = ""  # Empty means events are logged and dropped
    api_key: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_consecutive_parse_errors: int = Field(default=3, ge=1, le=100)

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value


class SessionConfig(BaseModel):
    """Session store configuration."""
    driver: Literal["memory", "redis"] = "memory"
    redis_url: str = ""
    prefix: str = "session:"
    ttl_seconds: int = Field(default=24 * 60 * 60, ge=1)

    @field_validator("driver", mode="before")
    @classmethod
    def normalize_driver(cls, value: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return "memory"


class RelayConfig(BaseModel):
    """Outbound relay and presence tuning."""
    max_text_length: int = Field(default=2000, ge=1)
    text_attempts: int = Field(default=3, ge=1, le=10)
    presence_attempts: int = Field(default=2, ge=1, le=10)
    retry_base_delay_ms: int = Field(default=100, ge=0, le=10_000)
    typing_keepalive_seconds: float = Field(default=5.0, gt=0)
    parallel_sessions: bool = False  # Process distinct conversations of one batch concurrently


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080
    metrics_prefix: str = "messenger_gateway_"


class GatewayConfig(BaseSettings):
    """Root configuration for messenger-gateway."""

    model_config = SettingsConfigDict(
        env_prefix="MESSENGER_GATEWAY_",
        env_nested_delimiter="__",
    )

    env: Literal["development", "test", "production"] = "development"
    log_level: str = ""
    facebook: FacebookConfig = Field(default_factory=FacebookConfig)
    agui: AguiConfig = Field(default_factory=AguiConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @model_validator(mode="after")
    def validate_session_driver(self) -> "GatewayConfig":
        if self.session.driver == "redis" and not self.session.redis_url:
            raise ValueError("session.redis_url is required when session.driver is 'redis'.")
        return self

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "INFO" if self.env == "production" else "DEBUG"

    def ensure_ready(self) -> None:
        """Raise ConfigError if anything required to serve traffic is missing."""
        missing = [
            name
            for name, value in (
                ("facebook.app_secret", self.facebook.app_secret),
                ("facebook.page_access_token", self.facebook.page_access_token),
                ("facebook.verify_token", self.facebook.verify_token),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
