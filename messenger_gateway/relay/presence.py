"""Typing indicator bound to the lifetime of one agent run."""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from messenger_gateway.errors import OutboundSendError
from messenger_gateway.relay.outbound import OutboundRelay


class PresenceState(str, Enum):
    IDLE = "idle"
    MARK_SEEN_SENT = "mark_seen_sent"
    TYPING_ON = "typing_on"
    TYPING_OFF = "typing_off"


class PresenceManager:
    """
    Per-dispatch presence state machine.

    ``begin()`` marks the conversation as seen and switches typing on, then
    keeps it on with a background task. ``end()`` may be called any number of
    times (run finished, run error, the caller's ``finally``); only the first
    call cancels the task and sends ``typing_off``. Presence failures are
    logged and never raised.
    """

    def __init__(self, relay: OutboundRelay, recipient_id: str, keepalive_seconds: float = 5.0):
        self.relay = relay
        self.recipient_id = recipient_id
        self.keepalive_seconds = keepalive_seconds
        self.state = PresenceState.IDLE
        self.sent = False
        self._keepalive: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "PresenceManager":
        await self.begin()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.end()

    async def begin(self) -> None:
        if self.state is not PresenceState.IDLE:
            return

        await self._send("mark_seen")
        self.state = PresenceState.MARK_SEEN_SENT

        if not await self._send("typing_on"):
            return
        self.sent = True
        self.state = PresenceState.TYPING_ON
        if self.keepalive_seconds > 0:
            self._keepalive = asyncio.create_task(self._keepalive_loop())

    async def end(self) -> None:
        if self.state is PresenceState.TYPING_OFF:
            return
        self.state = PresenceState.TYPING_OFF
        await self._cancel_keepalive()

        if not self.sent:
            return
        self.sent = False
        await self._send("typing_off")

    @property
    def keepalive_running(self) -> bool:
        return self._keepalive is not None and not self._keepalive.done()

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_seconds)
            await self._send("typing_on")

    async def _cancel_keepalive(self) -> None:
        task, self._keepalive = self._keepalive, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _send(self, action) -> bool:
        try:
            await self.relay.send_presence_action(self.recipient_id, action)
        except OutboundSendError as e:
            logger.warning(f"Failed to send {action} to {self.recipient_id}: {e}")
            return False
        return True
