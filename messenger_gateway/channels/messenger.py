"""Facebook Messenger Send API client."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from messenger_gateway.channels.base import SendClient, SendCommand, SendResult
from messenger_gateway.config.schema import FacebookConfig
from messenger_gateway.errors import MessengerApiError


class MessengerClient(SendClient):
    """
    Thin wrapper over ``POST /{version}/me/messages``.

    One HTTP request per ``send`` call; no retries here.
    """

    name = "messenger"

    def __init__(
        self,
        config: FacebookConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not config.page_access_token:
            raise ValueError("MessengerClient requires a page access token.")
        self.config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.send_timeout_seconds)

    @property
    def messages_endpoint(self) -> str:
        base = self.config.graph_api_base_url.rstrip("/")
        version = self.config.graph_api_version.lstrip("/")
        token = quote(self.config.page_access_token, safe="")
        return f"{base}/{version}/me/messages?access_token={token}"

    def build_request(self, command: SendCommand) -> dict[str, Any]:
        """Build the Send API JSON body for a command."""
        if not command.recipient_id:
            raise ValueError("SendCommand requires a recipient_id.")
        has_message = command.text is not None
        has_action = bool(command.sender_action)
        if not has_message and not has_action:
            raise ValueError("SendCommand requires a message or sender_action.")
        if has_message and has_action:
            raise ValueError("SendCommand must not mix message and sender_action.")

        request: dict[str, Any] = {"recipient": {"id": command.recipient_id}}
        if has_action:
            request["sender_action"] = command.sender_action
            return request

        messaging_type = command.messaging_type or self.config.default_messaging_type
        if messaging_type == "MESSAGE_TAG" and not command.tag:
            raise ValueError("MESSAGE_TAG messaging_type requires a tag.")
        request["messaging_type"] = messaging_type
        request["message"] = {"text": command.text}
        if command.tag:
            request["tag"] = command.tag
        return request

    async def send(self, command: SendCommand) -> SendResult:
        request = self.build_request(command)
        response = await self._http.post(self.messages_endpoint, json=request)
        if response.status_code >= 400:
            raise self._api_error(response)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return SendResult(
            recipient_id=str(body.get("recipient_id") or command.recipient_id),
            message_id=body.get("message_id"),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @staticmethod
    def _api_error(response: httpx.Response) -> MessengerApiError:
        message = f"Facebook Messenger API request failed with status {response.status_code}."
        try:
            details: Any = response.json()
        except ValueError:
            details = response.text
        graph_error = details.get("error") if isinstance(details, dict) else None
        if isinstance(graph_error, dict) and graph_error.get("message"):
            message = str(graph_error["message"])
        else:
            graph_error = None
        logger.debug(f"Messenger API error {response.status_code}: {details}")
        return MessengerApiError(
            message,
            status=response.status_code,
            details=details,
            graph_error=graph_error,
        )
