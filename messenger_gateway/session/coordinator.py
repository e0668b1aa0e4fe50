"""Per-conversation processing: lock, session merge, commands, presence and dispatch."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Sequence

from loguru import logger

from messenger_gateway.agui.decoder import AssistantMessage, DispatchHandlers, RunErrorPayload, RunLifecycle
from messenger_gateway.agui.dispatcher import AgentDispatcher
from messenger_gateway.agui.request import DispatchContext, has_user_messages
from messenger_gateway.commands.interceptor import CommandInterceptor
from messenger_gateway.errors import DispatchError, OutboundSendError
from messenger_gateway.events.models import EventType, NormalizedEvent
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.relay.outbound import OutboundRelay
from messenger_gateway.relay.presence import PresenceManager
from messenger_gateway.session.locks import KeyedLockRegistry
from messenger_gateway.session.store import DEFAULT_SESSION_TTL_SECONDS, SessionRecord, SessionStore


@dataclass
class Participants:
    user_id: str | None = None
    page_id: str | None = None


def resolve_participants(events: Sequence[NormalizedEvent], existing: SessionRecord | None) -> Participants:
    """
    Take user/page ids from the first message, or the first postback whose raw
    payload names a sender. Missing values fall back to the stored record.
    """
    stored_user = existing.user_id if existing else None
    stored_page = existing.page_id if existing else None

    for event in events:
        if event.type == EventType.MESSAGE and event.message is not None:
            envelope = event.message.envelope
            return Participants(
                user_id=envelope.sender_id or stored_user,
                page_id=envelope.recipient_id or stored_page,
            )
        if event.type == EventType.POSTBACK and event.raw_sender_id:
            return Participants(
                user_id=event.raw_sender_id,
                page_id=event.raw_recipient_id or stored_page,
            )

    return Participants(user_id=stored_user, page_id=stored_page)


@dataclass
class _RunState:
    notified: bool = False  # apology already sent for this dispatch


class SessionCoordinator:
    """
    Runs one batch of events for one conversation key.

    Calls for the same key are serialized through the injected lock registry
    and run in arrival order. Only a failed agent dispatch escalates, as
    DispatchError, and only after the user got the apology message.
    """

    def __init__(
        self,
        store: SessionStore,
        dispatcher: AgentDispatcher,
        relay: OutboundRelay,
        metrics: GatewayMetrics,
        *,
        locks: KeyedLockRegistry | None = None,
        interceptor: CommandInterceptor | None = None,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        typing_keepalive_seconds: float = 5.0,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.relay = relay
        self.metrics = metrics
        self.locks = locks if locks is not None else KeyedLockRegistry()
        self.interceptor = interceptor if interceptor is not None else CommandInterceptor(relay, store, metrics)
        self.session_ttl_seconds = session_ttl_seconds
        self.typing_keepalive_seconds = typing_keepalive_seconds

    async def process_session(self, session_key: str, events: Sequence[NormalizedEvent]) -> None:
        async with self.locks.hold(session_key):
            await self._process(session_key, list(events))

    async def _process(self, session_key: str, events: list[NormalizedEvent]) -> None:
        existing = await self._read_session(session_key)
        participants = resolve_participants(events, existing)
        await self._persist_session(session_key, existing, participants, events)

        dispatchable = await self.interceptor.intercept(session_key, events)
        if not dispatchable:
            logger.debug(f"All events for session {session_key} handled locally")
            return

        user_id = participants.user_id
        if not user_id:
            logger.warning(f"Missing Messenger user identifier for session {session_key}; skipping AG-UI dispatch")
            return

        if not has_user_messages(dispatchable):
            logger.debug(f"No user messages to dispatch for session {session_key}")
            return

        context = DispatchContext(session_id=session_key, user_id=user_id, page_id=participants.page_id)
        presence = PresenceManager(self.relay, user_id, self.typing_keepalive_seconds)
        run = _RunState()
        handlers = self._build_handlers(session_key, user_id, presence, run)

        try:
            await presence.begin()
            await self.dispatcher.dispatch(dispatchable, context, handlers)
        except Exception as e:
            self.metrics.dispatch_failures.inc()
            logger.error(f"Dispatch failed for session {session_key}: {e}")
            await self._notify_failure(user_id, run)
            raise DispatchError() from e
        finally:
            await presence.end()

    async def _read_session(self, session_key: str) -> SessionRecord | None:
        try:
            return await self.store.read(session_key)
        except Exception as e:
            logger.warning(f"Failed to read session {session_key}: {e}")
            return None

    async def _persist_session(
        self,
        session_key: str,
        existing: SessionRecord | None,
        participants: Participants,
        events: list[NormalizedEvent],
    ) -> None:
        last_event_timestamp = events[-1].timestamp if events else int(time.time() * 1000)
        record = (existing or SessionRecord()).merged(
            user_id=participants.user_id,
            page_id=participants.page_id,
            last_event_timestamp=last_event_timestamp,
        )
        try:
            await self.store.write(session_key, record, ttl_seconds=self.session_ttl_seconds)
        except Exception as e:
            logger.warning(f"Failed to update session store for {session_key}: {e}")

    async def _notify_failure(self, user_id: str, run: _RunState) -> None:
        if run.notified:
            return
        run.notified = True
        await self.relay.send_error_message(user_id)

    def _build_handlers(
        self,
        session_key: str,
        user_id: str,
        presence: PresenceManager,
        run: _RunState,
    ) -> DispatchHandlers:
        async def on_run_started(payload: RunLifecycle) -> None:
            logger.info(f"AG-UI run {payload.run_id} started for session {session_key}")

        async def on_run_finished(payload: RunLifecycle) -> None:
            logger.info(f"AG-UI run {payload.run_id} finished for session {session_key}")
            await presence.end()

        async def on_run_error(payload: RunErrorPayload) -> None:
            logger.error(f"AG-UI run error for session {session_key}: {payload.message}")
            await self._notify_failure(user_id, run)
            await presence.end()

        async def on_assistant_message(message: AssistantMessage) -> None:
            try:
                await self.relay.send_text(user_id, message.content, "assistant")
            except OutboundSendError as e:
                logger.warning(f"Dropped assistant message {message.message_id} for session {session_key}: {e}")

        return DispatchHandlers(
            on_run_started=on_run_started,
            on_run_finished=on_run_finished,
            on_run_error=on_run_error,
            on_assistant_message=on_assistant_message,
        )
