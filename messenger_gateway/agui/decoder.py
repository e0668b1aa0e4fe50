"""
SSE decoder for AG-UI run streams.

The agent answers a run request with a ``text/event-stream`` body. Blocks are
separated by a blank line; the ``data:`` lines of a block form one JSON event.
Assistant text is accumulated per message id and handed to the assistant
sink exactly once per id.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

from loguru import logger

from messenger_gateway.agui.events import RunEvent, RunEventType, is_assistant, snapshot_message_id
from messenger_gateway.errors import DecodeError

DEFAULT_MAX_CONSECUTIVE_PARSE_ERRORS = 3


@dataclass
class RunLifecycle:
    run_id: str | None = None
    thread_id: str | None = None


@dataclass
class RunErrorPayload:
    message: str
    run_id: str | None = None
    thread_id: str | None = None
    code: str | None = None
    cause: Any = None


@dataclass
class AssistantMessage:
    content: str
    message_id: str | None = None


@dataclass
class DispatchHandlers:
    """Async sinks for decoded run events. Any of them may be left unset."""

    on_run_started: Callable[[RunLifecycle], Awaitable[None]] | None = None
    on_run_finished: Callable[[RunLifecycle], Awaitable[None]] | None = None
    on_run_error: Callable[[RunErrorPayload], Awaitable[None]] | None = None
    on_assistant_message: Callable[[AssistantMessage], Awaitable[None]] | None = None


def iter_data_payloads(body: str) -> Iterator[str]:
    """Yield the joined ``data:`` payload of every non-empty SSE block."""
    if not body:
        return
    for block in body.replace("\r\n", "\n").split("\n\n"):
        if not block:
            continue
        data_lines = [line[5:].lstrip() for line in block.split("\n") if line.startswith("data:")]
        if not data_lines:
            continue
        payload = "\n".join(data_lines)
        if payload:
            yield payload


class StreamDecoder:
    """
    Turns an SSE body into handler calls.

    State for the current run (open accumulators and already-dispatched ids)
    is reset on ``RUN_STARTED`` and after ``RUN_FINISHED``. More than
    ``max_consecutive_parse_errors`` malformed blocks in a row raise
    DecodeError; blocks after that are not processed.
    """

    def __init__(
        self,
        handlers: DispatchHandlers | None = None,
        max_consecutive_parse_errors: int = DEFAULT_MAX_CONSECUTIVE_PARSE_ERRORS,
    ):
        self.handlers = handlers or DispatchHandlers()
        self.max_consecutive_parse_errors = max_consecutive_parse_errors
        self.active_messages: dict[str, str] = {}
        self.dispatched_messages: set[str] = set()
        self.consecutive_parse_errors = 0
        self.emitted = 0

    async def feed(self, body: str) -> int:
        """Decode a complete response body. Returns the number of assistant messages emitted."""
        for payload in iter_data_payloads(body):
            event = self._parse(payload)
            if event is not None:
                await self.handle(event)

        # Stream ended without RUN_FINISHED: treat open messages as ended.
        await self._flush_active()
        return self.emitted

    def _parse(self, payload: str) -> RunEvent | None:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            self.consecutive_parse_errors += 1
            logger.warning(
                f"Failed to parse AG-UI SSE event payload "
                f"(attempt {self.consecutive_parse_errors}): {e}"
            )
            if self.consecutive_parse_errors > self.max_consecutive_parse_errors:
                raise DecodeError() from e
            return None

        self.consecutive_parse_errors = 0
        if not isinstance(data, dict):
            logger.debug(f"Ignoring non-object AG-UI payload: {payload[:80]}")
            return None
        return RunEvent.from_payload(data)

    async def handle(self, event: RunEvent) -> None:
        kind = event.type

        if kind == RunEventType.RUN_STARTED:
            self._reset()
            await self._call(self.handlers.on_run_started, RunLifecycle(event.run_id, event.thread_id))

        elif kind == RunEventType.RUN_FINISHED:
            await self._flush_active()
            await self._call(self.handlers.on_run_finished, RunLifecycle(event.run_id, event.thread_id))
            self._reset()

        elif kind == RunEventType.RUN_ERROR:
            await self._call(
                self.handlers.on_run_error,
                RunErrorPayload(
                    message=event.message or "Unknown AG-UI error",
                    run_id=event.run_id,
                    thread_id=event.thread_id,
                    code=event.code,
                    cause=event.raw,
                ),
            )

        elif kind == RunEventType.TEXT_MESSAGE_START:
            if not event.is_assistant:
                return
            message_id = event.message_id or str(uuid.uuid4())
            self.active_messages.setdefault(message_id, "")

        elif kind in (RunEventType.TEXT_MESSAGE_CONTENT, RunEventType.TEXT_MESSAGE_CHUNK):
            if not event.message_id:
                return
            if not event.is_assistant and not self.active_messages:
                return
            current = self.active_messages.get(event.message_id, "")
            self.active_messages[event.message_id] = current + event.delta

        elif kind == RunEventType.TEXT_MESSAGE_END:
            if not event.message_id:
                return
            content = self.active_messages.pop(event.message_id, None)
            await self._emit(event.message_id, content)

        elif kind == RunEventType.TEXT_MESSAGE:
            if not event.is_assistant:
                return
            await self._emit(event.message_id, event.content)

        elif kind == RunEventType.MESSAGES_SNAPSHOT:
            if self.dispatched_messages:
                logger.debug("Skipping messages snapshot because assistant output already dispatched")
                return
            for message in event.messages:
                if not is_assistant(message.get("role")):
                    continue
                content = message.get("content")
                await self._emit(snapshot_message_id(message), content if isinstance(content, str) else None)
            self.active_messages.clear()

        else:
            logger.debug(f"Ignoring unrecognized AG-UI event {event.raw_type or '<untyped>'}")

    async def _emit(self, message_id: str | None, content: str | None) -> None:
        trimmed = (content or "").strip()
        if not trimmed:
            return
        if message_id:
            if message_id in self.dispatched_messages:
                return
            self.dispatched_messages.add(message_id)
        self.emitted += 1
        await self._call(self.handlers.on_assistant_message, AssistantMessage(trimmed, message_id))

    async def _flush_active(self) -> None:
        while self.active_messages:
            message_id = next(iter(self.active_messages))
            content = self.active_messages.pop(message_id)
            await self._emit(message_id, content)

    def _reset(self) -> None:
        self.active_messages.clear()
        self.dispatched_messages.clear()

    @staticmethod
    async def _call(handler, payload) -> None:
        if handler is not None:
            await handler(payload)
