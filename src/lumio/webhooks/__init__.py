"""Lumio Webhook Verification Module.

Authenticates inbound webhooks from the CRM integrations Lumio connects to,
with constant-time comparison to prevent timing attacks.

Supported Providers:
- HubSpot, Shopify, Mailchimp, Salesforce: HMAC-SHA256 of the raw body
- WhatsApp, GitHub: sha256=<hex> HMAC-SHA256
- Stripe: t=<ts>,v1=<sig> with timestamp and replay validation
- Slack: v0=<sig> plus request timestamp, with replay validation
- Anything else: generic HMAC with a configurable algorithm

Security Features:
- Constant-time signature comparison
- Timestamp tolerance windows
- Replay detection with a bounded, periodically swept cache

Usage:
    from lumio.webhooks import WebhookConfig, WebhookSecurity

    security = WebhookSecurity()
    result = security.verify_request(
        payload=request.body,
        headers=dict(request.headers),
        config=WebhookConfig(provider="github", secret="your-webhook-secret"),
    )

    if result.is_valid:
        print("Webhook verified!")
    else:
        print(f"Verification failed: {result.error}")
"""

from lumio.webhooks.providers import (
    WEBHOOK_PROVIDERS,
    GenericHMACWebhookProvider,
    HMACWebhookProvider,
    SlackWebhookProvider,
    StripeWebhookProvider,
    WebhookProvider,
    get_provider,
    register_provider,
)
from lumio.webhooks.replay import ReplayCache
from lumio.webhooks.security import WebhookSecurity, create_webhook_security
from lumio.webhooks.subscription import echo_challenge, verify_subscription_challenge
from lumio.webhooks.verifier import (
    VerificationStatus,
    WebhookConfig,
    WebhookVerification,
    compute_hmac,
    parse_signature_header,
    parse_stripe_signature,
    secure_compare,
    validate_timestamp,
)

__all__ = [
    # Core
    "WebhookSecurity",
    "create_webhook_security",
    "WebhookConfig",
    "WebhookVerification",
    "VerificationStatus",
    "ReplayCache",
    # Providers
    "WebhookProvider",
    "HMACWebhookProvider",
    "GenericHMACWebhookProvider",
    "StripeWebhookProvider",
    "SlackWebhookProvider",
    # Registry
    "WEBHOOK_PROVIDERS",
    "get_provider",
    "register_provider",
    # Handshakes
    "verify_subscription_challenge",
    "echo_challenge",
    # Utilities
    "compute_hmac",
    "secure_compare",
    "validate_timestamp",
    "parse_signature_header",
    "parse_stripe_signature",
]
