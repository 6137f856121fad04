"""Webhook receiver.

``POST /webhooks/{provider}`` authenticates a delivery with WebhookSecurity
before handing the raw body to an optional event handler. ``GET`` on the
same path answers provider subscription handshakes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from lumio.core.config import WebhookSecuritySettings, get_config
from lumio.observability.metrics import generate_metrics, get_content_type
from lumio.webhooks.security import WebhookSecurity
from lumio.webhooks.subscription import echo_challenge, verify_subscription_challenge

logger = structlog.get_logger()

WebhookHandler = Callable[[str, bytes, Mapping[str, str]], Awaitable[None]]


def create_app(
    settings: WebhookSecuritySettings | None = None,
    security: WebhookSecurity | None = None,
    handler: WebhookHandler | None = None,
) -> FastAPI:
    """Build the webhook receiver application.

    Args:
        settings: Webhook settings; defaults to the global config.
        security: Pre-built WebhookSecurity; built from settings if omitted.
        handler: Awaited with (provider, body, headers) for every verified delivery.
    """
    if security is None:
        if settings is None:
            settings = get_config().webhooks
        security = WebhookSecurity(settings=settings)
    settings = security.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        security.start()
        try:
            yield
        finally:
            await security.stop()

    app = FastAPI(title="Lumio Webhooks", lifespan=lifespan)
    app.state.security = security

    @app.post("/webhooks/{provider}")
    async def receive_webhook(provider: str, request: Request) -> JSONResponse:
        config = security.config_for(provider)
        if config is None:
            return JSONResponse(
                {"success": False, "error": "Unknown webhook provider"},
                status_code=404,
            )

        if settings.ip_whitelist:
            client_ip = request.client.host if request.client else ""
            if not security.validate_ip(client_ip, settings.ip_whitelist):
                logger.warning("Webhook from unlisted IP rejected", provider=provider, ip=client_ip)
                return JSONResponse(
                    {"success": False, "error": "Forbidden"},
                    status_code=403,
                )

        body = await request.body()
        headers = dict(request.headers)
        result = security.verify_request(body, headers, config)

        if not result.is_valid:
            return JSONResponse(
                {"success": False, "error": result.error},
                status_code=401,
            )

        if handler is not None:
            await handler(provider, body, headers)

        return JSONResponse(
            {"success": True, "provider": result.provider, "timestamp": result.timestamp}
        )

    @app.get("/webhooks/{provider}")
    async def subscription_handshake(provider: str, request: Request) -> Response:
        params = request.query_params

        if provider == "whatsapp":
            challenge = verify_subscription_challenge(
                mode=params.get("hub.mode"),
                token=params.get("hub.verify_token"),
                challenge=params.get("hub.challenge"),
                verify_token=settings.whatsapp_verify_token,
            )
            if challenge is None:
                return PlainTextResponse("Forbidden", status_code=403)
            return PlainTextResponse(challenge)

        challenge = echo_challenge(params.get("hub.challenge"))
        if challenge is not None:
            return PlainTextResponse(challenge)
        return JSONResponse({"success": True})

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {"status": "ok", "replay_cache": security.get_cache_stats()}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_metrics(), media_type=get_content_type())

    return app
