"""Lumio Webhook Providers.

Provider-specific webhook signature verification strategies for the CRM
integrations Lumio receives events from.

Supported Providers:
- HubSpot: X-HubSpot-Signature, HMAC-SHA256 hex
- Shopify: X-Shopify-Hmac-Sha256, HMAC-SHA256 base64
- Stripe: Stripe-Signature (t=...,v1=...) with timestamp validation
- WhatsApp: X-Hub-Signature-256 (sha256=...), HMAC-SHA256 hex
- Slack: X-Slack-Signature (v0=...) with timestamp validation
- Mailchimp: HMAC-SHA256 hex (Mailchimp does not sign natively)
- Salesforce: HMAC-SHA256 base64
- GitHub: X-Hub-Signature-256 (sha256=...), HMAC-SHA256 hex
- Anything else: generic HMAC with a configurable algorithm

Usage:
    from lumio.webhooks.providers import get_provider

    provider = get_provider("shopify")
    result = provider.verify(body, signature, config)
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from lumio.webhooks.verifier import (
    Encoding,
    VerificationStatus,
    WebhookConfig,
    WebhookVerification,
    compute_hmac,
    parse_signature_header,
    parse_stripe_signature,
    secure_compare,
    to_bytes,
    validate_timestamp,
)

SIGNATURE_MISMATCH = "Signature mismatch"
INVALID_SIGNATURE_FORMAT = "Invalid signature format"
INVALID_TIMESTAMP_FORMAT = "Invalid timestamp format"
TIMESTAMP_OUTSIDE_TOLERANCE = "Timestamp outside tolerance"
SLACK_TIMESTAMP_REQUIRED = "Timestamp required for Slack verification"


class WebhookProvider(ABC):
    """Base class for webhook providers.

    Each provider implements its specific signature verification logic.
    Providers that carry a signed timestamp set ``replay_protected`` so the
    caller can run replay detection on the returned timestamp.
    """

    name: str
    signature_header: str
    timestamp_header: str | None = None
    replay_protected: bool = False

    @abstractmethod
    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        *,
        timestamp: str | int | None = None,
        now: float | None = None,
    ) -> WebhookVerification:
        """Verify webhook signature.

        Args:
            payload: Raw request body.
            signature: Signature header value as sent by the provider.
            config: Verification settings (secret, algorithm, tolerance).
            timestamp: Separate timestamp header value, if the provider uses one.
            now: Current unix time, defaults to the wall clock.

        Returns:
            WebhookVerification with status and details.
        """
        ...

    @abstractmethod
    def sign(
        self,
        payload: bytes | str,
        secret: str,
        *,
        timestamp: int | None = None,
        algorithm: str = "sha256",
    ) -> str:
        """Produce the signature header value this provider would send."""
        ...

    def _mismatch(self, timestamp: int | None = None) -> WebhookVerification:
        return WebhookVerification.failure(
            self.name,
            VerificationStatus.INVALID_SIGNATURE,
            SIGNATURE_MISMATCH,
            timestamp=timestamp,
        )


@dataclass
class HMACWebhookProvider(WebhookProvider):
    """HMAC over the raw body, compared against the signature header.

    ``signature_prefix`` handles the ``sha256=`` style envelopes: with
    ``strip_prefix`` the prefix is removed from the provided value before
    comparison, otherwise it is prepended to the expected digest and the
    whole header value must match.
    """

    name: str
    signature_header: str
    encoding: Encoding = "hex"
    signature_prefix: str = ""
    strip_prefix: bool = False

    def _digest(self, payload: bytes | str, secret: str, algorithm: str) -> str:
        return compute_hmac(payload, secret, algorithm, self.encoding)

    def _algorithm(self, config: WebhookConfig) -> str:
        return "sha256"

    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        *,
        timestamp: str | int | None = None,
        now: float | None = None,
    ) -> WebhookVerification:
        digest = self._digest(payload, config.secret, self._algorithm(config))

        if self.strip_prefix:
            provided = parse_signature_header(signature, prefix=self.signature_prefix)
            expected = digest
        else:
            provided = signature
            expected = self.signature_prefix + digest

        if provided and secure_compare(expected, provided):
            return WebhookVerification.success(self.name)
        return self._mismatch()

    def sign(
        self,
        payload: bytes | str,
        secret: str,
        *,
        timestamp: int | None = None,
        algorithm: str = "sha256",
    ) -> str:
        return self.signature_prefix + self._digest(payload, secret, algorithm)


@dataclass
class GenericHMACWebhookProvider(HMACWebhookProvider):
    """Fallback for providers without a dedicated strategy.

    Hex HMAC of the raw body using ``config.algorithm``.
    """

    name: str = "generic"
    signature_header: str = "X-Webhook-Signature"

    def _algorithm(self, config: WebhookConfig) -> str:
        return config.algorithm or "sha256"

    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        *,
        timestamp: str | int | None = None,
        now: float | None = None,
    ) -> WebhookVerification:
        expected = self._digest(payload, config.secret, self._algorithm(config))
        if signature and secure_compare(expected, signature):
            return WebhookVerification.success(config.provider)
        return WebhookVerification.failure(
            config.provider,
            VerificationStatus.INVALID_SIGNATURE,
            SIGNATURE_MISMATCH,
        )


@dataclass
class StripeWebhookProvider(WebhookProvider):
    """Stripe webhook signature verification.

    Stripe sends: Stripe-Signature: t=<timestamp>,v1=<signature>

    The signed payload is ``"{timestamp}.{body}"``. Several ``v1`` entries
    may be present while a signing secret is being rolled; any match counts.
    """

    name: str = "stripe"
    signature_header: str = "Stripe-Signature"
    replay_protected: bool = True

    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        *,
        timestamp: str | int | None = None,
        now: float | None = None,
    ) -> WebhookVerification:
        parsed = parse_stripe_signature(signature)
        if parsed is None:
            return WebhookVerification.failure(
                self.name,
                VerificationStatus.INVALID_FORMAT,
                INVALID_SIGNATURE_FORMAT,
            )

        signed_at, candidates = parsed

        if not validate_timestamp(signed_at, config.timestamp_tolerance, now):
            return WebhookVerification.failure(
                self.name,
                VerificationStatus.EXPIRED_TIMESTAMP,
                TIMESTAMP_OUTSIDE_TOLERANCE,
                timestamp=signed_at,
            )

        expected = self._expected(payload, config.secret, signed_at)
        matches = [secure_compare(expected, candidate) for candidate in candidates]

        if any(matches):
            return WebhookVerification.success(self.name, timestamp=signed_at)
        return self._mismatch(signed_at)

    def _expected(self, payload: bytes | str, secret: str, signed_at: int) -> str:
        signed_payload = f"{signed_at}.".encode() + to_bytes(payload)
        return compute_hmac(signed_payload, secret)

    def sign(
        self,
        payload: bytes | str,
        secret: str,
        *,
        timestamp: int | None = None,
        algorithm: str = "sha256",
    ) -> str:
        if timestamp is None:
            timestamp = int(time.time())
        return f"t={timestamp},v1={self._expected(payload, secret, timestamp)}"


@dataclass
class SlackWebhookProvider(WebhookProvider):
    """Slack webhook signature verification.

    Slack sends:
    - X-Slack-Signature: v0=<signature>
    - X-Slack-Request-Timestamp: <timestamp>

    Signature is computed over: v0:{timestamp}:{body}
    """

    name: str = "slack"
    signature_header: str = "X-Slack-Signature"
    timestamp_header: str | None = "X-Slack-Request-Timestamp"
    replay_protected: bool = True

    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        *,
        timestamp: str | int | None = None,
        now: float | None = None,
    ) -> WebhookVerification:
        raw_timestamp = str(timestamp).strip() if timestamp is not None else ""
        if not raw_timestamp:
            return WebhookVerification.failure(
                self.name,
                VerificationStatus.MISSING_TIMESTAMP,
                SLACK_TIMESTAMP_REQUIRED,
            )

        try:
            request_time = int(raw_timestamp)
        except ValueError:
            return WebhookVerification.failure(
                self.name,
                VerificationStatus.INVALID_FORMAT,
                INVALID_TIMESTAMP_FORMAT,
            )

        if not validate_timestamp(request_time, config.timestamp_tolerance, now):
            return WebhookVerification.failure(
                self.name,
                VerificationStatus.EXPIRED_TIMESTAMP,
                TIMESTAMP_OUTSIDE_TOLERANCE,
                timestamp=request_time,
            )

        expected = self._expected(payload, config.secret, raw_timestamp)

        if signature and secure_compare(expected, signature):
            return WebhookVerification.success(self.name, timestamp=request_time)
        return self._mismatch(request_time)

    def _expected(self, payload: bytes | str, secret: str, raw_timestamp: str) -> str:
        basestring = f"v0:{raw_timestamp}:".encode() + to_bytes(payload)
        return "v0=" + compute_hmac(basestring, secret)

    def sign(
        self,
        payload: bytes | str,
        secret: str,
        *,
        timestamp: int | None = None,
        algorithm: str = "sha256",
    ) -> str:
        if timestamp is None:
            timestamp = int(time.time())
        return self._expected(payload, secret, str(timestamp))


def _builtin_providers() -> list[WebhookProvider]:
    return [
        HMACWebhookProvider(name="hubspot", signature_header="X-HubSpot-Signature"),
        HMACWebhookProvider(
            name="shopify",
            signature_header="X-Shopify-Hmac-Sha256",
            encoding="base64",
        ),
        StripeWebhookProvider(),
        HMACWebhookProvider(
            name="whatsapp",
            signature_header="X-Hub-Signature-256",
            signature_prefix="sha256=",
            strip_prefix=True,
        ),
        SlackWebhookProvider(),
        HMACWebhookProvider(name="mailchimp", signature_header="X-Mailchimp-Signature"),
        HMACWebhookProvider(
            name="salesforce",
            signature_header="X-Salesforce-Signature",
            encoding="base64",
        ),
        HMACWebhookProvider(
            name="github",
            signature_header="X-Hub-Signature-256",
            signature_prefix="sha256=",
        ),
    ]


# Provider registry
WEBHOOK_PROVIDERS: dict[str, WebhookProvider] = {
    provider.name: provider for provider in _builtin_providers()
}


def register_provider(provider: WebhookProvider) -> None:
    """Register (or replace) a verification strategy under its name."""
    WEBHOOK_PROVIDERS[provider.name] = provider


def get_provider(provider_name: str) -> WebhookProvider:
    """Get a webhook provider by name.

    Unknown names get a generic HMAC provider carrying that name.

    Args:
        provider_name: Name of the provider.

    Returns:
        WebhookProvider instance.
    """
    provider = WEBHOOK_PROVIDERS.get(provider_name)
    if provider is None:
        return GenericHMACWebhookProvider(name=provider_name)
    return provider
