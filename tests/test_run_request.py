from messenger_gateway.agui.request import DispatchContext, build_run_request, has_user_messages
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

CONTEXT = DispatchContext(session_id="u1", user_id="u1", page_id="p1")


def _message_event(ts: int = 1, is_echo: bool = False, **message_fields) -> NormalizedEvent:
    envelope = MessageEnvelope(
        object_id="p1", sender_id="u1", recipient_id="p1", timestamp=ts, mid=f"mid.{ts}", is_echo=is_echo
    )
    message_fields.setdefault("kind", MessageKind.TEXT)
    return NormalizedEvent(
        type=EventType.MESSAGE,
        entry_id="p1",
        timestamp=ts,
        message=NormalizedMessage(envelope=envelope, **message_fields),
    )


def _postback_event(ts: int = 1, **fields) -> NormalizedEvent:
    return NormalizedEvent(type=EventType.POSTBACK, entry_id="p1", timestamp=ts, postback=Postback(**fields))


def test_text_quick_reply_attachments_and_postbacks() -> None:
    events = [
        _message_event(ts=10, text="hello"),
        _message_event(
            ts=30,
            kind=MessageKind.QUICK_REPLY,
            text="Red",
            quick_reply=QuickReply(payload="COLOR_RED", title="Red"),
        ),
        _message_event(
            ts=20,
            kind=MessageKind.ATTACHMENTS,
            attachments=(Attachment(type="image", payload={"url": "https://x/y.png"}), Attachment()),
        ),
        _postback_event(ts=5, title="Start", payload="GET_STARTED"),
        _postback_event(ts=6),
    ]

    request = build_run_request(events, CONTEXT)

    contents = [m.content for m in request.messages]
    assert contents == [
        "hello",
        "Red\nQuick reply payload: COLOR_RED\nQuick reply title: Red",
        'Attachments:\nimage: {"url":"https://x/y.png"}\nattachment-2: {}',
        "Postback title: Start\nPostback payload: GET_STARTED",
        "Postback received",
    ]
    assert [m.id for m in request.messages] == ["mid.10", "mid.30", "mid.20", None, None]
    assert request.last_event_timestamp == 30


def test_payload_is_camel_case_with_forwarded_props() -> None:
    request = build_run_request([_message_event(text="hi")], CONTEXT)
    payload = request.to_payload()

    assert payload["threadId"] == "u1"
    assert payload["runId"].startswith("messenger-u1-")
    assert payload["tools"] == []
    assert payload["context"] == []
    assert payload["forwardedProps"] == {"source": "facebook-messenger", "pageId": "p1", "userId": "u1"}
    assert payload["state"] == {"messenger": {"lastEventTimestamp": 1}}


def test_fresh_run_id_per_request() -> None:
    events = [_message_event(text="hi")]
    assert build_run_request(events, CONTEXT).run_id != build_run_request(events, CONTEXT).run_id


def test_zero_timestamps_fall_back_to_now() -> None:
    request = build_run_request([_message_event(ts=0, text="hi")], CONTEXT)
    assert request.last_event_timestamp > 1_600_000_000_000


def test_echoes_and_unknown_events_produce_no_request() -> None:
    events = [
        _message_event(text="page said this", is_echo=True),
        NormalizedEvent(type=EventType.UNKNOWN, entry_id="p1", timestamp=3),
    ]
    assert build_run_request(events, CONTEXT) is None
    assert has_user_messages(events) is False
    assert has_user_messages(events + [_postback_event()]) is True
