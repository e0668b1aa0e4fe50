"""Error taxonomy for the gateway."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for gateway errors. ``status_code`` is used by the HTTP layer."""

    status_code: int = 500
    default_message = "Gateway error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class SignatureError(GatewayError):
    """Raised when the webhook request signature check fails."""

    status_code = 403
    default_message = "Invalid webhook signature"


class VerificationTokenError(GatewayError):
    """Raised when the GET subscription handshake carries a bad token."""

    status_code = 403
    default_message = "Invalid verification token"


class ConfigError(GatewayError):
    """Fatal configuration problem detected at startup."""

    default_message = "Invalid gateway configuration"


class SessionPersistenceError(GatewayError):
    """Session store read/write failure. Logged by callers, never escalated."""

    default_message = "Session store operation failed"


class CommandHandlingError(GatewayError):
    """A local slash command could not be answered."""

    default_message = "Failed to handle slash command"


class DecodeError(GatewayError):
    """The AG-UI event stream had too many consecutive malformed frames."""

    default_message = "Exceeded consecutive AG-UI SSE parse errors"


class AgentTransportError(GatewayError):
    """The agent-run endpoint answered with a non-success status."""

    status_code = 502
    default_message = "AG-UI dispatch failed"

    def __init__(self, message: str | None = None, *, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class DispatchError(GatewayError):
    """Wraps failures that occur while relaying events to the agent."""

    status_code = 502
    default_message = "Failed to dispatch events to AG-UI"


class OutboundSendError(GatewayError):
    """Sending to the messaging platform failed after all retry attempts."""

    default_message = "Failed to send Messenger message"

    def __init__(self, message: str | None = None, *, kind: str = "", attempts: int = 0):
        super().__init__(message)
        self.kind = kind
        self.attempts = attempts


class MessengerApiError(GatewayError):
    """Non-2xx answer from the Messenger Send API."""

    status_code = 502
    default_message = "Facebook Messenger API request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        status: int,
        details: Any = None,
        graph_error: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.details = details
        graph_error = graph_error or {}
        self.code = graph_error.get("code")
        self.type = graph_error.get("type")
        self.error_subcode = graph_error.get("error_subcode")
        self.fbtrace_id = graph_error.get("fbtrace_id")
