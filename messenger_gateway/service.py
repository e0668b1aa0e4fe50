"""Messenger webhook service and the wiring that assembles the pipeline from config."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Any

from loguru import logger

from messenger_gateway.agui.dispatcher import AgentDispatcher, create_dispatcher
from messenger_gateway.channels.base import SendClient
from messenger_gateway.channels.messenger import MessengerClient
from messenger_gateway.channels.signature import verify_signature
from messenger_gateway.commands.interceptor import CommandInterceptor
from messenger_gateway.config.schema import GatewayConfig
from messenger_gateway.errors import SignatureError, VerificationTokenError
from messenger_gateway.events.normalizer import normalize_webhook_payload
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.relay.outbound import OutboundRelay
from messenger_gateway.router import EventRouter
from messenger_gateway.session.coordinator import SessionCoordinator
from messenger_gateway.session.locks import KeyedLockRegistry
from messenger_gateway.session.store import InMemorySessionStore, SessionStore


@dataclass
class WebhookResult:
    received_events: int

    def to_dict(self) -> dict[str, Any]:
        return {"status": "ok", "receivedEvents": self.received_events}


class MessengerWebhookService:
    """
    Verifies and processes Messenger webhook deliveries.

    The signature is checked against the raw request body before anything is
    parsed; the normalized events are then handed to the router.
    """

    def __init__(
        self,
        *,
        app_secret: str,
        verify_token: str,
        router: EventRouter,
        closeables: list[Any] | None = None,
    ):
        self.app_secret = app_secret
        self.verify_token = verify_token
        self.router = router
        self._closeables = list(closeables or [])

    def verify_subscription(self, mode: str | None, token: str | None, challenge: str | None) -> str:
        """Answer the GET handshake. Returns the challenge to echo back."""
        if mode != "subscribe" or not challenge or not token or not self.verify_token:
            raise VerificationTokenError()
        if not hmac.compare_digest(token.encode("utf-8"), self.verify_token.encode("utf-8")):
            raise VerificationTokenError()
        return challenge

    def verify_delivery(self, signature_header: str | None, raw_body: bytes | str) -> None:
        """Raise SignatureError unless the header signs ``raw_body`` with the app secret."""
        if signature_header and verify_signature(self.app_secret, raw_body, signature_header):
            return
        preview = (signature_header or "")[:12]
        logger.warning(
            f"Rejected Messenger webhook due to invalid signature "
            f"(has_signature={bool(signature_header)}, preview={preview!r})"
        )
        raise SignatureError()

    async def handle_webhook(
        self,
        payload: Any,
        signature_header: str | None,
        raw_body: bytes | str,
    ) -> WebhookResult:
        self.verify_delivery(signature_header, raw_body)

        events = normalize_webhook_payload(payload)
        if not events:
            return WebhookResult(received_events=0)

        await self.router.route(events)
        return WebhookResult(received_events=len(events))

    async def close(self) -> None:
        for resource in self._closeables:
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Error closing {type(resource).__name__}: {e}")


def create_session_store(config: GatewayConfig) -> SessionStore:
    session_cfg = config.session
    if session_cfg.driver == "redis":
        from messenger_gateway.session.redis_store import RedisSessionStore

        return RedisSessionStore(
            url=session_cfg.redis_url,
            prefix=session_cfg.prefix,
            default_ttl_seconds=session_cfg.ttl_seconds,
        )
    return InMemorySessionStore(prefix=session_cfg.prefix, default_ttl_seconds=session_cfg.ttl_seconds)


def build_service(
    config: GatewayConfig,
    *,
    metrics: GatewayMetrics | None = None,
    send_client: SendClient | None = None,
    store: SessionStore | None = None,
    dispatcher: AgentDispatcher | None = None,
    locks: KeyedLockRegistry | None = None,
) -> MessengerWebhookService:
    """Assemble the pipeline. Any collaborator can be injected; the rest comes from config."""
    metrics = metrics or GatewayMetrics(prefix=config.server.metrics_prefix)
    send_client = send_client or MessengerClient(config.facebook)
    if store is None:
        store = create_session_store(config)
    dispatcher = dispatcher or create_dispatcher(config.agui)

    relay = OutboundRelay.from_config(send_client, metrics, config.relay)
    coordinator = SessionCoordinator(
        store,
        dispatcher,
        relay,
        metrics,
        locks=locks,
        interceptor=CommandInterceptor(relay, store, metrics),
        session_ttl_seconds=config.session.ttl_seconds,
        typing_keepalive_seconds=config.relay.typing_keepalive_seconds,
    )
    router = EventRouter(coordinator, parallel_sessions=config.relay.parallel_sessions)
    logger.info(
        f"Messenger gateway ready (session driver={config.session.driver}, "
        f"agui={'http' if config.agui.base_url else 'logging'})"
    )
    return MessengerWebhookService(
        app_secret=config.facebook.app_secret,
        verify_token=config.facebook.verify_token,
        router=router,
        closeables=[send_client, store, dispatcher],
    )
