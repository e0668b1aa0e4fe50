"""Turn raw Messenger webhook payloads into NormalizedEvent batches."""

from __future__ import annotations

from typing import Any

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


def normalize_webhook_payload(payload: Any) -> list[NormalizedEvent]:
    """
    Flatten a webhook payload into normalized events, in delivery order.

    Only ``object == "page"`` payloads are understood; anything else yields
    an empty list.
    """
    if not isinstance(payload, dict) or payload.get("object") != "page":
        return []
    entries = payload.get("entry")
    if not isinstance(entries, list):
        return []

    results: list[NormalizedEvent] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("messaging"), list):
            continue
        entry_id = str(entry.get("id") or "")

        for event in entry["messaging"]:
            if not isinstance(event, dict):
                continue
            timestamp = _as_int(event.get("timestamp"))

            message = normalize_message(entry_id, event)
            if message is not None:
                results.append(
                    NormalizedEvent(
                        type=EventType.MESSAGE,
                        entry_id=entry_id,
                        timestamp=timestamp,
                        message=message,
                        raw=event,
                    )
                )
                continue

            postback = event.get("postback")
            if isinstance(postback, dict):
                results.append(
                    NormalizedEvent(
                        type=EventType.POSTBACK,
                        entry_id=entry_id,
                        timestamp=timestamp,
                        postback=Postback(
                            title=postback.get("title"),
                            payload=postback.get("payload"),
                            referral=postback.get("referral"),
                        ),
                        raw=event,
                    )
                )
                continue

            results.append(
                NormalizedEvent(
                    type=EventType.UNKNOWN,
                    entry_id=entry_id,
                    timestamp=timestamp,
                    raw=event,
                )
            )

    return results


def normalize_message(entry_id: str, event: dict[str, Any]) -> NormalizedMessage | None:
    """Normalize the ``message`` part of a messaging event, if usable."""
    message = event.get("message")
    if not isinstance(message, dict):
        return None

    sender_id = (event.get("sender") or {}).get("id")
    recipient_id = (event.get("recipient") or {}).get("id")
    if not sender_id or not recipient_id:
        return None

    envelope = MessageEnvelope(
        object_id=entry_id,
        sender_id=str(sender_id),
        recipient_id=str(recipient_id),
        timestamp=_as_int(event.get("timestamp")),
        mid=message.get("mid"),
        is_echo=bool(message.get("is_echo")),
        metadata=message.get("metadata"),
    )

    quick_reply = message.get("quick_reply")
    if isinstance(quick_reply, dict):
        return NormalizedMessage(
            kind=MessageKind.QUICK_REPLY,
            envelope=envelope,
            text=message.get("text") or "",
            quick_reply=QuickReply(
                payload=str(quick_reply.get("payload") or ""),
                title=quick_reply.get("title"),
            ),
        )

    attachments = message.get("attachments")
    if isinstance(attachments, list) and attachments:
        return NormalizedMessage(
            kind=MessageKind.ATTACHMENTS,
            envelope=envelope,
            text=message.get("text") or "",
            attachments=tuple(
                Attachment(type=item.get("type"), payload=item.get("payload"))
                for item in attachments
                if isinstance(item, dict)
            ),
        )

    text = message.get("text")
    if isinstance(text, str) and text:
        return NormalizedMessage(kind=MessageKind.TEXT, envelope=envelope, text=text)

    return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
