import asyncio
import json

import httpx
import pytest

from messenger_gateway.agui.decoder import DispatchHandlers
from messenger_gateway.agui.dispatcher import HttpAgentDispatcher, LoggingAgentDispatcher, create_dispatcher
from messenger_gateway.agui.request import DispatchContext
from messenger_gateway.config.schema import AguiConfig
from messenger_gateway.errors import AgentTransportError, DecodeError
from messenger_gateway.events.models import (
    EventType,
    MessageEnvelope,
    MessageKind,
    NormalizedEvent,
    NormalizedMessage,
)

CONTEXT = DispatchContext(session_id="u1", user_id="u1", page_id="p1")


def _hello() -> list[NormalizedEvent]:
    envelope = MessageEnvelope(object_id="p1", sender_id="u1", recipient_id="p1", timestamp=42, mid="mid.1")
    return [
        NormalizedEvent(
            type=EventType.MESSAGE,
            entry_id="p1",
            timestamp=42,
            message=NormalizedMessage(kind=MessageKind.TEXT, envelope=envelope, text="hello"),
        )
    ]


def _recorder():
    calls: list[tuple] = []

    async def on_error(payload):
        calls.append(("error", payload.message, payload.run_id))

    async def on_message(message):
        calls.append(("message", message.content))

    return calls, DispatchHandlers(on_run_error=on_error, on_assistant_message=on_message)


def _dispatcher(handler, **kwargs) -> HttpAgentDispatcher:
    return HttpAgentDispatcher(
        "https://agent.test/run",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


async def test_posts_run_input_with_sse_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = 'data: {"type":"TEXT_MESSAGE","messageId":"m1","role":"assistant","content":"Hi"}\n\n'
        return httpx.Response(200, text=body)

    calls, handlers = _recorder()
    request = await _dispatcher(handler, api_key="secret-key").dispatch(_hello(), CONTEXT, handlers)

    sent = seen[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://agent.test/run"
    assert sent.headers["accept"] == "text/event-stream"
    assert sent.headers["authorization"] == "Bearer secret-key"
    payload = json.loads(sent.content)
    assert payload["runId"] == request.run_id
    assert payload["state"]["messenger"]["lastEventTimestamp"] == 42
    assert calls == [("message", "Hi")]


async def test_no_authorization_header_without_api_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="")

    await _dispatcher(handler).dispatch(_hello(), CONTEXT)

    assert "authorization" not in seen[0].headers


async def test_non_success_status_reports_and_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream down")

    calls, handlers = _recorder()
    with pytest.raises(AgentTransportError) as exc_info:
        await _dispatcher(handler).dispatch(_hello(), CONTEXT, handlers)

    assert exc_info.value.status == 502
    assert exc_info.value.body == "upstream down"
    assert calls[0][0] == "error"
    assert "502" in calls[0][1]
    assert calls[0][2].startswith("messenger-u1-")


async def test_slow_agent_hits_hard_timeout() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, text="")

    calls, handlers = _recorder()
    with pytest.raises(AgentTransportError):
        await _dispatcher(handler, timeout_seconds=0.05).dispatch(_hello(), CONTEXT, handlers)

    assert calls and calls[0][0] == "error"


async def test_decoder_failure_propagates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="data: nope\n\n" * 5)

    with pytest.raises(DecodeError):
        await _dispatcher(handler, max_consecutive_parse_errors=3).dispatch(_hello(), CONTEXT)


async def test_nothing_to_dispatch_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("agent should not be called")

    assert await _dispatcher(handler).dispatch([], CONTEXT) is None


async def test_create_dispatcher_without_base_url_logs_and_reports() -> None:
    dispatcher = create_dispatcher(AguiConfig())
    assert isinstance(dispatcher, LoggingAgentDispatcher)

    calls, handlers = _recorder()
    await dispatcher.dispatch(_hello(), CONTEXT, handlers)
    assert calls == [("error", "AG-UI dispatcher not configured", None)]


async def test_create_dispatcher_with_base_url() -> None:
    dispatcher = create_dispatcher(AguiConfig(base_url="https://agent.test/run/", api_key="k", timeout_seconds=3))
    assert isinstance(dispatcher, HttpAgentDispatcher)
    assert dispatcher.base_url == "https://agent.test/run"
    assert dispatcher.timeout_seconds == 3
    await dispatcher.close()
