"""Tests for the webhook receiver application."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from lumio.core.config import WebhookSecuritySettings
from lumio.server import create_app
from lumio.webhooks import WebhookSecurity, get_provider

from conftest import NOW

SECRETS = {"stripe": "whsec_test", "github": "gh_secret", "slack": "slack_secret"}
PAYLOAD = b'{"id":"evt_1"}'


def make_settings(**kwargs) -> WebhookSecuritySettings:
    kwargs.setdefault("provider_secrets", SECRETS)
    return WebhookSecuritySettings(**kwargs)


@pytest_asyncio.fixture
async def make_client(clock):
    """Factory for an AsyncClient bound to a freshly built app."""
    clients: list[AsyncClient] = []

    async def factory(settings: WebhookSecuritySettings | None = None, handler=None):
        security = WebhookSecurity(settings=settings or make_settings(), clock=clock)
        app = create_app(security=security, handler=handler)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()


class TestReceiveWebhook:
    """Tests for POST /webhooks/{provider}."""

    @pytest.mark.asyncio
    async def test_valid_stripe_delivery(self, make_client):
        client = await make_client()
        signature = get_provider("stripe").sign(PAYLOAD, SECRETS["stripe"], timestamp=NOW)

        response = await client.post(
            "/webhooks/stripe",
            content=PAYLOAD,
            headers={"Stripe-Signature": signature},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "provider": "stripe", "timestamp": NOW}

    @pytest.mark.asyncio
    async def test_replayed_delivery_rejected(self, make_client):
        client = await make_client()
        headers = {
            "Stripe-Signature": get_provider("stripe").sign(
                PAYLOAD, SECRETS["stripe"], timestamp=NOW
            )
        }

        first = await client.post("/webhooks/stripe", content=PAYLOAD, headers=headers)
        second = await client.post("/webhooks/stripe", content=PAYLOAD, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 401
        assert second.json()["error"] == "Possible replay attack detected"

    @pytest.mark.asyncio
    async def test_bad_signature(self, make_client):
        client = await make_client()

        response = await client.post(
            "/webhooks/github",
            content=PAYLOAD,
            headers={"X-Hub-Signature-256": "sha256=" + "0" * 64},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Signature mismatch"}

    @pytest.mark.asyncio
    async def test_missing_signature_header(self, make_client):
        client = await make_client()

        response = await client.post("/webhooks/github", content=PAYLOAD)

        assert response.status_code == 401
        assert response.json()["error"] == "Missing X-Hub-Signature-256 header"

    @pytest.mark.asyncio
    async def test_slack_headers(self, make_client):
        client = await make_client()
        signature = get_provider("slack").sign(PAYLOAD, SECRETS["slack"], timestamp=NOW)

        response = await client.post(
            "/webhooks/slack",
            content=PAYLOAD,
            headers={"X-Slack-Signature": signature, "X-Slack-Request-Timestamp": str(NOW)},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_provider(self, make_client):
        """Test providers without a configured secret are not routed."""
        client = await make_client()

        response = await client.post("/webhooks/shopify", content=PAYLOAD)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ip_not_whitelisted(self, make_client):
        client = await make_client(make_settings(ip_whitelist=["10.0.0.1"]))
        signature = get_provider("github").sign(PAYLOAD, SECRETS["github"])

        response = await client.post(
            "/webhooks/github",
            content=PAYLOAD,
            headers={"X-Hub-Signature-256": signature},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ip_whitelisted(self, make_client):
        client = await make_client(make_settings(ip_whitelist=["127.0.0.1"]))
        signature = get_provider("github").sign(PAYLOAD, SECRETS["github"])

        response = await client.post(
            "/webhooks/github",
            content=PAYLOAD,
            headers={"X-Hub-Signature-256": signature},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_handler_receives_verified_body(self, make_client):
        received = []

        async def handler(provider, body, headers):
            received.append((provider, body))

        client = await make_client(handler=handler)
        signature = get_provider("github").sign(PAYLOAD, SECRETS["github"])

        await client.post(
            "/webhooks/github", content=PAYLOAD, headers={"X-Hub-Signature-256": signature}
        )
        await client.post(
            "/webhooks/github", content=PAYLOAD, headers={"X-Hub-Signature-256": "bad"}
        )

        assert received == [("github", PAYLOAD)]


class TestSubscriptionHandshake:
    """Tests for GET /webhooks/{provider}."""

    @pytest.mark.asyncio
    async def test_whatsapp_handshake(self, make_client):
        client = await make_client(make_settings(whatsapp_verify_token="tok"))

        response = await client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "tok", "hub.challenge": "987"},
        )

        assert response.status_code == 200
        assert response.text == "987"

    @pytest.mark.asyncio
    async def test_whatsapp_wrong_token(self, make_client):
        client = await make_client(make_settings(whatsapp_verify_token="tok"))

        response = await client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "bad", "hub.challenge": "987"},
        )

        assert response.status_code == 403
        assert response.text == "Forbidden"

    @pytest.mark.asyncio
    async def test_hubspot_challenge_echo(self, make_client):
        client = await make_client()

        response = await client.get("/webhooks/hubspot", params={"hub.challenge": "abc"})

        assert response.text == "abc"

    @pytest.mark.asyncio
    async def test_no_challenge(self, make_client):
        client = await make_client()

        response = await client.get("/webhooks/hubspot")

        assert response.json() == {"success": True}


class TestOperationalEndpoints:
    """Tests for /health and /metrics."""

    @pytest.mark.asyncio
    async def test_health(self, make_client):
        client = await make_client()

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "replay_cache": {"size": 0, "max_size": 1000},
        }

    @pytest.mark.asyncio
    async def test_metrics(self, make_client):
        client = await make_client()
        await client.post("/webhooks/github", content=PAYLOAD)

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "lumio_webhook_verifications_total" in response.text
