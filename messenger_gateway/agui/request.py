"""Build AG-UI ``RunAgentInput`` payloads from normalized Messenger events."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

from messenger_gateway.events.models import (
    EventType,
    MessageKind,
    NormalizedEvent,
    NormalizedMessage,
    Postback,
)

FORWARDED_SOURCE = "facebook-messenger"


@dataclass
class DispatchContext:
    """The conversation a run is dispatched for."""

    session_id: str
    user_id: str
    page_id: str | None = None


@dataclass
class UserMessage:
    content: str
    id: str | None = None
    role: str = "user"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.id:
            data["id"] = self.id
        return data


@dataclass
class RunRequest:
    thread_id: str
    run_id: str
    messages: list[UserMessage]
    forwarded_props: dict[str, Any] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)
    tools: list[Any] = field(default_factory=list)
    context: list[Any] = field(default_factory=list)

    @property
    def last_event_timestamp(self) -> int:
        return int(self.state.get("messenger", {}).get("lastEventTimestamp", 0))

    def to_payload(self) -> dict[str, Any]:
        return {
            "threadId": self.thread_id,
            "runId": self.run_id,
            "messages": [m.to_dict() for m in self.messages],
            "tools": list(self.tools),
            "context": list(self.context),
            "forwardedProps": dict(self.forwarded_props),
            "state": self.state,
        }


def build_run_request(events: Sequence[NormalizedEvent], context: DispatchContext) -> RunRequest | None:
    """
    Translate events to a run request.

    Returns None when no user-facing message results (only echoes, unknown
    events, ...), in which case nothing should be dispatched.
    """
    messages: list[UserMessage] = []
    last_timestamp = 0

    for event in events:
        if event.timestamp > last_timestamp:
            last_timestamp = event.timestamp

        if event.type == EventType.MESSAGE and event.message is not None:
            user_message = build_user_message(event.message)
            if user_message is not None:
                messages.append(user_message)
        elif event.type == EventType.POSTBACK and event.postback is not None:
            messages.append(UserMessage(content=build_postback_content(event.postback)))

    if not messages:
        return None

    forwarded_props: dict[str, Any] = {"source": FORWARDED_SOURCE, "userId": context.user_id}
    if context.page_id:
        forwarded_props["pageId"] = context.page_id

    return RunRequest(
        thread_id=context.session_id,
        run_id=f"messenger-{context.session_id}-{uuid.uuid4()}",
        messages=messages,
        forwarded_props=forwarded_props,
        state={"messenger": {"lastEventTimestamp": last_timestamp or int(time.time() * 1000)}},
    )


def has_user_messages(events: Sequence[NormalizedEvent]) -> bool:
    """Whether ``build_run_request`` would produce at least one message."""
    for event in events:
        if event.type == EventType.POSTBACK and event.postback is not None:
            return True
        if event.type == EventType.MESSAGE and event.message is not None:
            if build_user_message(event.message) is not None:
                return True
    return False


def build_user_message(message: NormalizedMessage) -> UserMessage | None:
    # Echoes are the page's own sends, not user input.
    if message.envelope.is_echo:
        return None

    mid = message.envelope.mid
    if message.kind == MessageKind.TEXT:
        return UserMessage(id=mid, content=message.text)

    if message.kind == MessageKind.QUICK_REPLY and message.quick_reply is not None:
        parts = [message.text] if message.text else []
        parts.append(f"Quick reply payload: {message.quick_reply.payload}")
        if message.quick_reply.title:
            parts.append(f"Quick reply title: {message.quick_reply.title}")
        return UserMessage(id=mid, content="\n".join(parts))

    if message.kind == MessageKind.ATTACHMENTS:
        sections = [message.text] if message.text else []
        sections.append("Attachments:")
        for index, attachment in enumerate(message.attachments, start=1):
            label = attachment.type or f"attachment-{index}"
            summary = json.dumps(attachment.payload, separators=(",", ":")) if attachment.payload else "{}"
            sections.append(f"{label}: {summary}")
        return UserMessage(id=mid, content="\n".join(sections))

    return None


def build_postback_content(postback: Postback) -> str:
    parts = []
    if postback.title:
        parts.append(f"Postback title: {postback.title}")
    if postback.payload:
        parts.append(f"Postback payload: {postback.payload}")
    return "\n".join(parts) or "Postback received"
