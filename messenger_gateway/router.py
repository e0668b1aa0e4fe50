"""Entry point of the dispatch pipeline: group a batch by conversation and process each group."""

from __future__ import annotations

import asyncio
import uuid
from typing import Sequence

from messenger_gateway.events.models import NormalizedEvent
from messenger_gateway.session.coordinator import SessionCoordinator


def resolve_session_id(event: NormalizedEvent) -> str:
    """Conversation key: sender id, then recipient id, then raw sender id, else a fresh placeholder."""
    message = event.message
    if message is not None and message.envelope.sender_id:
        return message.envelope.sender_id
    if message is not None and message.envelope.recipient_id:
        return message.envelope.recipient_id
    if event.raw_sender_id:
        return event.raw_sender_id
    return f"unknown-{uuid.uuid4()}"


def group_events_by_session(events: Sequence[NormalizedEvent]) -> dict[str, list[NormalizedEvent]]:
    """Partition events by conversation key, keeping arrival order within and across keys."""
    grouped: dict[str, list[NormalizedEvent]] = {}
    for event in events:
        grouped.setdefault(resolve_session_id(event), []).append(event)
    return grouped


class EventRouter:
    """
    Hands each conversation's events to the coordinator.

    Keys run one after another unless ``parallel_sessions`` is set, in which
    case they run concurrently; all keys are awaited and the first failure is
    re-raised afterwards.
    """

    def __init__(self, coordinator: SessionCoordinator, parallel_sessions: bool = False):
        self.coordinator = coordinator
        self.parallel_sessions = parallel_sessions

    async def route(self, events: Sequence[NormalizedEvent]) -> int:
        """Process a batch. Returns the number of conversations touched."""
        grouped = group_events_by_session(events)
        if not grouped:
            return 0

        if not self.parallel_sessions:
            for session_key, session_events in grouped.items():
                await self.coordinator.process_session(session_key, session_events)
            return len(grouped)

        results = await asyncio.gather(
            *(self.coordinator.process_session(key, group) for key, group in grouped.items()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return len(grouped)
