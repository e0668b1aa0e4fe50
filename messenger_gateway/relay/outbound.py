"""Outbound relay: size-safe chunking and bounded retries toward the platform."""

from __future__ import annotations

import asyncio
from typing import Literal

from loguru import logger

from messenger_gateway.channels.base import SendClient, SendCommand, SenderAction, SendResult
from messenger_gateway.errors import OutboundSendError
from messenger_gateway.monitoring.metrics import GatewayMetrics

MAX_MESSENGER_TEXT_LENGTH = 2000

ERROR_MESSAGE = "Sorry, something went wrong while processing your request. Please try again."

TextPurpose = Literal["assistant", "command", "error"]


def chunk_text(text: str, limit: int = MAX_MESSENGER_TEXT_LENGTH) -> list[str]:
    """
    Split text into pieces of at most ``limit`` characters.

    Cuts at the last space at or before the limit, or hard-cuts at the limit
    when there is none. Each piece is trimmed; the whitespace at a cut is
    consumed.
    """
    if limit < 1:
        raise ValueError("limit must be positive")
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        split = remaining.rfind(" ", 0, limit + 1)
        chunk = remaining[:split].strip() if split > 0 else ""
        if not chunk:
            split = limit
            chunk = remaining[:limit].strip()
        if chunk:
            chunks.append(chunk)
        remaining = remaining[split:].lstrip()

    if remaining:
        chunks.append(remaining)
    return chunks


class OutboundRelay:
    """
    Sends text and presence actions through a SendClient.

    Text is chunked to the platform limit; every single send is retried with
    a linear backoff (``attempt * retry_base_delay_ms``).
    """

    def __init__(
        self,
        client: SendClient,
        metrics: GatewayMetrics,
        *,
        max_text_length: int = MAX_MESSENGER_TEXT_LENGTH,
        text_attempts: int = 3,
        presence_attempts: int = 2,
        retry_base_delay_ms: int = 100,
    ):
        self.client = client
        self.metrics = metrics
        self.max_text_length = max(1, int(max_text_length))
        self.text_attempts = max(1, int(text_attempts))
        self.presence_attempts = max(1, int(presence_attempts))
        self.retry_base_delay_ms = max(0, int(retry_base_delay_ms))

    @classmethod
    def from_config(cls, client: SendClient, metrics: GatewayMetrics, relay_config) -> "OutboundRelay":
        return cls(
            client,
            metrics,
            max_text_length=relay_config.max_text_length,
            text_attempts=relay_config.text_attempts,
            presence_attempts=relay_config.presence_attempts,
            retry_base_delay_ms=relay_config.retry_base_delay_ms,
        )

    async def send_text(self, recipient_id: str | None, text: str, purpose: TextPurpose) -> int:
        """
        Send ``text`` to a recipient, chunked.

        Returns:
            Number of chunks delivered.

        Raises:
            OutboundSendError: when a chunk still fails after all attempts.
                Later chunks are not attempted.
        """
        if not recipient_id or not text or not text.strip():
            return 0

        sent = 0
        for chunk in chunk_text(text, self.max_text_length):
            command = SendCommand(recipient_id=recipient_id, text=chunk)
            try:
                await self._send_with_retry(command, kind=purpose, attempts=self.text_attempts)
            except OutboundSendError:
                logger.error(
                    f"Failed to send Messenger message to {recipient_id} "
                    f"(chunk {sent + 1}, purpose={purpose})"
                )
                raise
            sent += 1
        return sent

    async def send_presence_action(self, recipient_id: str, action: SenderAction) -> SendResult:
        """Send a sender action such as ``typing_on``. Raises OutboundSendError."""
        command = SendCommand(recipient_id=recipient_id, sender_action=action)
        return await self._send_with_retry(command, kind=action, attempts=self.presence_attempts)

    async def send_error_message(self, recipient_id: str | None) -> bool:
        """Best-effort apology. Never raises; returns whether it was delivered."""
        try:
            return await self.send_text(recipient_id, ERROR_MESSAGE, "error") > 0
        except OutboundSendError:
            return False

    async def _send_with_retry(self, command: SendCommand, *, kind: str, attempts: int) -> SendResult:
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                result = await self.client.send(command)
            except Exception as exc:
                last_error = exc
                self.metrics.outbound_messages.labels(kind=kind, status="error").inc()
                logger.debug(f"Send attempt {attempt}/{attempts} for {kind} failed: {exc}")
                if attempt < attempts:
                    await asyncio.sleep(attempt * self.retry_base_delay_ms / 1000.0)
                continue
            self.metrics.outbound_messages.labels(kind=kind, status="success").inc()
            return result

        raise OutboundSendError(
            f"Sending {kind} failed after {attempts} attempts: {last_error}",
            kind=kind,
            attempts=attempts,
        ) from last_error
