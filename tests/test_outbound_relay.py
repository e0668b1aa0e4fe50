import asyncio

import pytest

from messenger_gateway.channels.base import SendClient, SendCommand, SendResult
from messenger_gateway.errors import MessengerApiError, OutboundSendError
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.relay.outbound import ERROR_MESSAGE, OutboundRelay
from messenger_gateway.relay.presence import PresenceManager, PresenceState


class _ScriptedClient(SendClient):
    """Fails the first ``failures`` calls, then succeeds."""

    def __init__(self, failures: int = 0, fail_actions: set[str] | None = None) -> None:
        self.failures = failures
        self.fail_actions = fail_actions or set()
        self.calls: list[SendCommand] = []

    async def send(self, command: SendCommand) -> SendResult:
        self.calls.append(command)
        if command.sender_action in self.fail_actions:
            raise MessengerApiError(status=500)
        if self.failures > 0:
            self.failures -= 1
            raise MessengerApiError(status=503)
        return SendResult(recipient_id=command.recipient_id, message_id=f"mid.{len(self.calls)}")


def _relay(client: SendClient, metrics: GatewayMetrics, **kwargs) -> OutboundRelay:
    kwargs.setdefault("retry_base_delay_ms", 0)
    return OutboundRelay(client, metrics, **kwargs)


async def test_long_text_is_sent_in_chunks() -> None:
    client = _ScriptedClient()
    metrics = GatewayMetrics()
    relay = _relay(client, metrics, max_text_length=10)

    sent = await relay.send_text("u1", "hello there general kenobi", "assistant")

    assert sent == 4
    assert [c.text for c in client.calls] == ["hello", "there", "general", "kenobi"]
    assert metrics.sample("outbound_messages_total", {"kind": "assistant", "status": "success"}) == 4


async def test_send_is_retried_with_linear_backoff(monkeypatch) -> None:
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr("messenger_gateway.relay.outbound.asyncio.sleep", fake_sleep)
    client = _ScriptedClient(failures=2)
    metrics = GatewayMetrics()
    relay = OutboundRelay(client, metrics, retry_base_delay_ms=100)

    assert await relay.send_text("u1", "hi", "assistant") == 1

    assert len(client.calls) == 3
    assert delays == [0.1, 0.2]
    assert metrics.sample("outbound_messages_total", {"kind": "assistant", "status": "error"}) == 2
    assert metrics.sample("outbound_messages_total", {"kind": "assistant", "status": "success"}) == 1


async def test_exhausted_chunk_aborts_remaining_chunks() -> None:
    client = _ScriptedClient(failures=100)
    relay = _relay(client, GatewayMetrics(), max_text_length=5)

    with pytest.raises(OutboundSendError) as exc_info:
        await relay.send_text("u1", "aaaa bbbb cccc", "assistant")

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, MessengerApiError)
    assert [c.text for c in client.calls] == ["aaaa", "aaaa", "aaaa"]


async def test_presence_actions_use_fewer_attempts() -> None:
    client = _ScriptedClient(fail_actions={"typing_on"})
    metrics = GatewayMetrics()
    relay = _relay(client, metrics)

    with pytest.raises(OutboundSendError):
        await relay.send_presence_action("u1", "typing_on")

    assert len(client.calls) == 2
    assert metrics.sample("outbound_messages_total", {"kind": "typing_on", "status": "error"}) == 2


async def test_error_message_is_best_effort() -> None:
    client = _ScriptedClient(failures=100)
    relay = _relay(client, GatewayMetrics())

    assert await relay.send_error_message("u1") is False
    assert client.calls[0].text == ERROR_MESSAGE


async def test_blank_text_or_missing_recipient_sends_nothing() -> None:
    client = _ScriptedClient()
    relay = _relay(client, GatewayMetrics())

    assert await relay.send_text("u1", "   ", "assistant") == 0
    assert await relay.send_text(None, "hello", "assistant") == 0
    assert client.calls == []


async def test_presence_sequence_and_idempotent_end() -> None:
    client = _ScriptedClient()
    relay = _relay(client, GatewayMetrics())
    presence = PresenceManager(relay, "u1", keepalive_seconds=60)

    await presence.begin()
    assert presence.state is PresenceState.TYPING_ON
    assert presence.keepalive_running

    await presence.end()
    await presence.end()

    assert [c.sender_action for c in client.calls] == ["mark_seen", "typing_on", "typing_off"]
    assert presence.state is PresenceState.TYPING_OFF
    assert not presence.keepalive_running


async def test_presence_keepalive_resends_typing_until_ended() -> None:
    client = _ScriptedClient()
    relay = _relay(client, GatewayMetrics())

    async with PresenceManager(relay, "u1", keepalive_seconds=0.01):
        await asyncio.sleep(0.055)

    actions = [c.sender_action for c in client.calls]
    assert actions[:2] == ["mark_seen", "typing_on"]
    assert actions[-1] == "typing_off"
    assert actions.count("typing_on") >= 3

    count = len(client.calls)
    await asyncio.sleep(0.03)
    assert len(client.calls) == count


async def test_presence_end_waits_for_keepalive_task() -> None:
    client = _ScriptedClient()
    relay = _relay(client, GatewayMetrics())
    presence = PresenceManager(relay, "u1", keepalive_seconds=60)

    await presence.begin()
    task = presence._keepalive
    await presence.end()

    assert task is not None
    assert task.done()
    assert task.cancelled()


async def test_presence_failure_degrades_without_raising() -> None:
    client = _ScriptedClient(fail_actions={"mark_seen", "typing_on"})
    relay = _relay(client, GatewayMetrics())
    presence = PresenceManager(relay, "u1")

    await presence.begin()
    await presence.end()

    assert presence.sent is False
    assert not presence.keepalive_running
    assert "typing_off" not in [c.sender_action for c in client.calls]
