"""Local slash commands answered by the gateway without calling the agent."""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from messenger_gateway.errors import OutboundSendError
from messenger_gateway.events.models import EventType, MessageKind, NormalizedEvent
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.relay.outbound import OutboundRelay
from messenger_gateway.session.store import SessionStore

HELP_MESSAGE = "\n".join([
    "Available commands:",
    "/help  – show this message",
    "/reset – clear the current session and start fresh",
])

RESET_MESSAGE = "Conversation reset. You can start again."


def parse_command(text: str) -> tuple[str, str] | None:
    """
    Return ``(name, raw_token)`` for a slash command, else None.

    ``name`` is the lower-cased first token without the slash; ``raw_token``
    is that token as typed, e.g. ``("foo", "/Foo")``.
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    raw = stripped.split(maxsplit=1)[0]
    return raw[1:].lower(), raw


class CommandInterceptor:
    """
    Answers ``/help`` and ``/reset``; any other ``/word`` gets an
    unknown-command reply. Handled events are removed from the batch.
    """

    def __init__(self, relay: OutboundRelay, store: SessionStore, metrics: GatewayMetrics):
        self.relay = relay
        self.store = store
        self.metrics = metrics

    async def intercept(self, session_key: str, events: Sequence[NormalizedEvent]) -> list[NormalizedEvent]:
        """Handle commands in ``events`` and return the ones still to dispatch."""
        remaining: list[NormalizedEvent] = []
        for event in events:
            command = self._command_for(event)
            if command is None:
                remaining.append(event)
                continue
            name, raw = command
            await self._handle(session_key, event.message.envelope.sender_id, name, raw)
        return remaining

    @staticmethod
    def _command_for(event: NormalizedEvent) -> tuple[str, str] | None:
        message = event.message
        if event.type != EventType.MESSAGE or message is None:
            return None
        if message.kind != MessageKind.TEXT or message.envelope.is_echo:
            return None
        return parse_command(message.text)

    async def _handle(self, session_key: str, recipient_id: str, name: str, raw: str) -> None:
        if name == "reset":
            try:
                await self.store.delete(session_key)
            except Exception as e:
                logger.warning(f"Failed to delete session {session_key} on /reset: {e}")
            await self._reply(recipient_id, "reset", RESET_MESSAGE)
        elif name == "help":
            await self._reply(recipient_id, "help", HELP_MESSAGE)
        else:
            logger.info(f"Unknown command {raw} from {recipient_id}")
            await self._reply(recipient_id, "unknown", f"Unknown command: {raw}\n\n{HELP_MESSAGE}")

    async def _reply(self, recipient_id: str, label: str, text: str) -> None:
        try:
            await self.relay.send_text(recipient_id, text, "command")
        except OutboundSendError as e:
            self.metrics.slash_commands.labels(command=label, status="error").inc()
            logger.error(f"Failed to answer /{label} for {recipient_id}: {e}")
            return
        self.metrics.slash_commands.labels(command=label, status="success").inc()
