"""Normalized Messenger event types consumed by the dispatch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    MESSAGE = "message"
    POSTBACK = "postback"
    UNKNOWN = "unknown"


class MessageKind(str, Enum):
    TEXT = "text"
    ATTACHMENTS = "attachments"
    QUICK_REPLY = "quick_reply"


@dataclass(frozen=True)
class MessageEnvelope:
    """Routing metadata shared by every normalized message."""

    object_id: str
    sender_id: str
    recipient_id: str
    timestamp: int
    mid: str | None = None
    is_echo: bool = False
    metadata: str | None = None


@dataclass(frozen=True)
class Attachment:
    type: str | None = None
    payload: dict[str, Any] | None = None


@dataclass(frozen=True)
class QuickReply:
    payload: str
    title: str | None = None


@dataclass(frozen=True)
class Postback:
    title: str | None = None
    payload: str | None = None
    referral: dict[str, Any] | None = None


@dataclass(frozen=True)
class NormalizedMessage:
    """A user-visible message: plain text, attachments or a quick reply."""

    kind: MessageKind
    envelope: MessageEnvelope
    text: str = ""
    attachments: tuple[Attachment, ...] = ()
    quick_reply: QuickReply | None = None


@dataclass(frozen=True)
class NormalizedEvent:
    """One entry of a webhook batch after normalization."""

    type: EventType
    entry_id: str
    timestamp: int
    message: NormalizedMessage | None = None
    postback: Postback | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_sender_id(self) -> str | None:
        sender = self.raw.get("sender") if isinstance(self.raw, dict) else None
        if isinstance(sender, dict) and sender.get("id"):
            return str(sender["id"])
        return None

    @property
    def raw_recipient_id(self) -> str | None:
        recipient = self.raw.get("recipient") if isinstance(self.raw, dict) else None
        if isinstance(recipient, dict) and recipient.get("id"):
            return str(recipient["id"])
        return None
