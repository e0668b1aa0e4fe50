"""Normalized event model and webhook normalizer."""

from messenger_gateway.events.models import (
    Attachment,
    EventType,
    MessageEnvelope,
    MessageKind,
    NormalizedEvent,
    NormalizedMessage,
    Postback,
    QuickReply,
)
from messenger_gateway.events.normalizer import normalize_webhook_payload

__all__ = [
    "Attachment",
    "EventType",
    "MessageEnvelope",
    "MessageKind",
    "NormalizedEvent",
    "NormalizedMessage",
    "Postback",
    "QuickReply",
    "normalize_webhook_payload",
]
