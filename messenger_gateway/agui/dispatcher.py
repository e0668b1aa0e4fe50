"""
AG-UI dispatchers: send a run request to the agent and decode its stream.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Sequence

import httpx
from loguru import logger

from messenger_gateway.agui.decoder import (
    DEFAULT_MAX_CONSECUTIVE_PARSE_ERRORS,
    DispatchHandlers,
    RunErrorPayload,
    StreamDecoder,
)
from messenger_gateway.agui.request import DispatchContext, RunRequest, build_run_request
from messenger_gateway.config.schema import AguiConfig
from messenger_gateway.errors import AgentTransportError
from messenger_gateway.events.models import NormalizedEvent


class AgentDispatcher(ABC):
    """Forwards a conversation's events to the agent and reports back through handlers."""

    @abstractmethod
    async def dispatch(
        self,
        events: Sequence[NormalizedEvent],
        context: DispatchContext,
        handlers: DispatchHandlers | None = None,
    ) -> RunRequest | None:
        """
        Run the agent for ``events``.

        Returns the request that was sent, or None when there was nothing to
        dispatch. Failures are reported to ``handlers.on_run_error`` and then
        raised.
        """
        pass

    async def close(self) -> None:
        return None


class LoggingAgentDispatcher(AgentDispatcher):
    """Used when no agent endpoint is configured; drops events and reports a run error."""

    async def dispatch(self, events, context, handlers=None):
        logger.warning(
            f"AG-UI dispatcher not configured - dropping {len(events)} event(s) "
            f"for session {context.session_id}"
        )
        if handlers and handlers.on_run_error:
            await handlers.on_run_error(
                RunErrorPayload(message="AG-UI dispatcher not configured", thread_id=context.session_id)
            )
        return None


class HttpAgentDispatcher(AgentDispatcher):
    """POSTs ``RunAgentInput`` JSON to an AG-UI endpoint and decodes the SSE answer."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        max_consecutive_parse_errors: int = DEFAULT_MAX_CONSECUTIVE_PARSE_ERRORS,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not base_url:
            raise ValueError("HttpAgentDispatcher requires a base_url.")
        self.base_url = base_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_consecutive_parse_errors = max_consecutive_parse_errors
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def dispatch(self, events, context, handlers=None):
        handlers = handlers or DispatchHandlers()
        request = build_run_request(events, context)
        if request is None:
            logger.debug(f"No Messenger events to dispatch to AG-UI for session {context.session_id}")
            return None

        try:
            body = await self._post(request)
            decoder = StreamDecoder(handlers, self.max_consecutive_parse_errors)
            await decoder.feed(body)
        except Exception as e:
            logger.error(
                f"Failed to dispatch events to AG-UI for session {context.session_id} "
                f"(run {request.run_id}): {e}"
            )
            if handlers.on_run_error:
                await handlers.on_run_error(
                    RunErrorPayload(
                        message=str(e) or "Failed to dispatch events to AG-UI",
                        run_id=request.run_id,
                        thread_id=request.thread_id,
                        cause=e,
                    )
                )
            raise
        return request

    async def _post(self, request: RunRequest) -> str:
        try:
            response = await asyncio.wait_for(
                self._http.post(self.base_url, json=request.to_payload(), headers=self.build_headers()),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AgentTransportError(
                f"AG-UI request timed out after {self.timeout_seconds}s"
            ) from e

        if not response.is_success:
            body = response.text
            raise AgentTransportError(
                f"AG-UI dispatch failed with status {response.status_code}: {body}",
                status=response.status_code,
                body=body,
            )
        return response.text

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def create_dispatcher(config: AguiConfig, http_client: httpx.AsyncClient | None = None) -> AgentDispatcher:
    """Pick the HTTP dispatcher when an endpoint is configured, the logging one otherwise."""
    if not config.base_url:
        return LoggingAgentDispatcher()
    return HttpAgentDispatcher(
        config.base_url,
        api_key=config.api_key,
        timeout_seconds=config.timeout_seconds,
        max_consecutive_parse_errors=config.max_consecutive_parse_errors,
        http_client=http_client,
    )
