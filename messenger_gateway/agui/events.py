"""Typed AG-UI run events decoded from the agent's SSE stream."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RunEventType(str, Enum):
    RUN_STARTED = "RUN_STARTED"
    RUN_FINISHED = "RUN_FINISHED"
    RUN_ERROR = "RUN_ERROR"
    TEXT_MESSAGE_START = "TEXT_MESSAGE_START"
    TEXT_MESSAGE_CONTENT = "TEXT_MESSAGE_CONTENT"
    TEXT_MESSAGE_CHUNK = "TEXT_MESSAGE_CHUNK"
    TEXT_MESSAGE_END = "TEXT_MESSAGE_END"
    TEXT_MESSAGE = "TEXT_MESSAGE"
    MESSAGES_SNAPSHOT = "MESSAGES_SNAPSHOT"
    UNRECOGNIZED = "UNRECOGNIZED"

    @classmethod
    def parse(cls, value: Any) -> "RunEventType":
        name = str(value or "").strip().upper()
        if name == cls.UNRECOGNIZED.value:
            return cls.UNRECOGNIZED
        try:
            return cls(name)
        except ValueError:
            return cls.UNRECOGNIZED


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def stringify_delta(delta: Any) -> str:
    """Text deltas may arrive as non-strings; those are JSON-encoded."""
    if delta is None:
        return ""
    if isinstance(delta, str):
        return delta
    return json.dumps(delta, separators=(",", ":"))


def is_assistant(role: Any) -> bool:
    return isinstance(role, str) and role.lower() == "assistant"


@dataclass
class RunEvent:
    """
    One decoded AG-UI event.

    ``raw_type`` keeps the wire name so unrecognized events can still be
    logged. Both ``snake_case`` and ``camelCase`` id keys are accepted.
    """

    type: RunEventType
    raw_type: str = ""
    run_id: str | None = None
    thread_id: str | None = None
    message_id: str | None = None
    role: str | None = None
    delta: str = ""
    content: str | None = None
    message: str | None = None
    code: str | None = None
    messages: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_assistant(self) -> bool:
        return is_assistant(self.role)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RunEvent":
        raw_type = str(payload.get("type") or "")
        messages = payload.get("messages")
        code = payload.get("code")
        return cls(
            type=RunEventType.parse(raw_type),
            raw_type=raw_type.upper(),
            run_id=_as_str(_pick(payload, "run_id", "runId")),
            thread_id=_as_str(_pick(payload, "thread_id", "threadId")),
            message_id=_as_str(_pick(payload, "message_id", "messageId")),
            role=_as_str(payload.get("role")),
            delta=stringify_delta(_pick(payload, "delta", "text")),
            content=_as_str(payload.get("content")),
            message=_as_str(payload.get("message")),
            code=str(code) if code is not None else None,
            messages=[m for m in messages if isinstance(m, dict)] if isinstance(messages, list) else [],
            raw=payload,
        )


def snapshot_message_id(message: dict[str, Any]) -> str | None:
    return _as_str(_pick(message, "id", "message_id", "messageId"))
