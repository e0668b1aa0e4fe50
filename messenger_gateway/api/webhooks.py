"""Messenger webhook routes."""

from __future__ import annotations

import json
import time
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from messenger_gateway.errors import GatewayError
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.service import MessengerWebhookService

SIGNATURE_HEADER = "x-hub-signature-256"


def create_webhook_router(
    *,
    service: MessengerWebhookService,
    metrics: GatewayMetrics,
    path: str = "/webhook",
) -> APIRouter:
    """Create the GET handshake and POST delivery routes."""
    router = APIRouter()

    @router.get(path, response_class=PlainTextResponse)
    async def verify_subscription(
        mode: str | None = Query(default=None, alias="hub.mode"),
        token: str | None = Query(default=None, alias="hub.verify_token"),
        challenge: str | None = Query(default=None, alias="hub.challenge"),
    ) -> str:
        return service.verify_subscription(mode, token, challenge)

    @router.post(path)
    async def receive_webhook(request: Request) -> dict[str, Any]:
        started = time.perf_counter()
        status = 200
        try:
            body = await request.body()
            signature_header = request.headers.get(SIGNATURE_HEADER)
            service.verify_delivery(signature_header, body)
            try:
                payload = json.loads(body or b"{}")
            except json.JSONDecodeError as e:
                raise HTTPException(status_code=400, detail="Webhook body is not valid JSON.") from e
            result = await service.handle_webhook(payload, signature_header, body)
            return result.to_dict()
        except HTTPException as e:
            status = e.status_code
            raise
        except GatewayError as e:
            status = e.status_code
            raise
        except Exception:
            status = 500
            raise
        finally:
            labels = {"method": "POST", "status": str(status)}
            metrics.requests.labels(**labels).inc()
            metrics.request_duration.labels(**labels).observe(time.perf_counter() - started)

    return router
