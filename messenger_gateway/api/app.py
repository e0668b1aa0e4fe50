"""FastAPI application for the gateway."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from messenger_gateway import __version__
from messenger_gateway.api.webhooks import create_webhook_router
from messenger_gateway.errors import GatewayError
from messenger_gateway.monitoring.metrics import GatewayMetrics
from messenger_gateway.service import MessengerWebhookService


def create_app(*, service: MessengerWebhookService, metrics: GatewayMetrics) -> FastAPI:
    """Create the gateway app around an already wired webhook service."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await service.close()

    app = FastAPI(title="messenger-gateway", version=__version__, docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(_request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"Webhook processing failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    @app.get("/metrics")
    async def metrics_endpoint() -> Response:
        payload, content_type = metrics.render()
        return Response(content=payload, media_type=content_type)

    app.include_router(create_webhook_router(service=service, metrics=metrics))
    return app
