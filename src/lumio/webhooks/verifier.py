"""Lumio Webhook Verification Primitives.

Value types and pure helpers shared by every provider strategy.

Security Features:
- HMAC signature computation with hex or base64 output
- Constant-time comparison to prevent timing attacks
- Timestamp tolerance checks

Usage:
    from lumio.webhooks.verifier import compute_hmac, secure_compare

    expected = compute_hmac(payload, secret="my-webhook-secret")
    if secure_compare(expected, request.headers["X-HubSpot-Signature"]):
        ...
"""

from __future__ import annotations

import base64
import hmac
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

Encoding = Literal["hex", "base64"]


class VerificationStatus(Enum):
    """Status of webhook signature verification."""

    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_FORMAT = "invalid_format"
    MISSING_SIGNATURE = "missing_signature"
    MISSING_TIMESTAMP = "missing_timestamp"
    EXPIRED_TIMESTAMP = "expired_timestamp"
    REPLAY_DETECTED = "replay_detected"
    ERROR = "error"


@dataclass(frozen=True)
class WebhookConfig:
    """Per-call verification settings for one provider."""

    provider: str
    """Provider name selecting the verification strategy."""

    secret: str = field(repr=False)
    """Shared signing secret issued by the provider."""

    algorithm: str = "sha256"
    """Hash algorithm for the generic HMAC path."""

    timestamp_tolerance: int = 300
    """Allowed clock skew in seconds for timestamped providers."""

    header_name: str | None = None
    """Signature header override for verify_request."""

    timestamp_header_name: str | None = None
    """Timestamp header override for verify_request."""


@dataclass
class WebhookVerification:
    """Result of webhook signature verification."""

    is_valid: bool
    """Whether the webhook is authentic, fresh and not replayed."""

    provider: str
    """Provider the payload was verified against."""

    status: VerificationStatus = VerificationStatus.VALID
    """Detailed verification status."""

    error: str | None = None
    """Error message if verification failed."""

    timestamp: int | None = None
    """Event timestamp for providers that sign one."""

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.is_valid

    @classmethod
    def success(cls, provider: str, timestamp: int | None = None) -> WebhookVerification:
        return cls(is_valid=True, provider=provider, timestamp=timestamp)

    @classmethod
    def failure(
        cls,
        provider: str,
        status: VerificationStatus,
        error: str,
        timestamp: int | None = None,
    ) -> WebhookVerification:
        return cls(
            is_valid=False,
            provider=provider,
            status=status,
            error=error,
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "is_valid": self.is_valid,
            "provider": self.provider,
            "status": self.status.value,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data


def to_bytes(payload: bytes | str) -> bytes:
    """Normalize a request body to bytes (strings are UTF-8 encoded)."""
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def compute_hmac(
    payload: bytes | str,
    secret: str,
    algorithm: str = "sha256",
    encoding: Encoding = "hex",
) -> str:
    """Compute an HMAC digest of a payload.

    Args:
        payload: The raw payload to sign.
        secret: Shared secret.
        algorithm: Any hash name hashlib understands (default: sha256).
        encoding: "hex" or "base64" output.

    Returns:
        Encoded digest string.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    try:
        mac = hmac.new(secret.encode("utf-8"), to_bytes(payload), algorithm)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e

    if encoding == "base64":
        return base64.b64encode(mac.digest()).decode("ascii")
    return mac.hexdigest()


def secure_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time.

    Both values go through hmac.compare_digest, which returns False for
    inputs of different length instead of raising.

    Args:
        a: First string.
        b: Second string.

    Returns:
        True if strings are equal.
    """
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def validate_timestamp(
    timestamp: int | float,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> bool:
    """Check that a unix timestamp lies within tolerance of the current time."""
    if now is None:
        now = time.time()
    return abs(int(now) - timestamp) <= tolerance_seconds


def parse_signature_header(
    header_value: str,
    prefix: str = "",
) -> str | None:
    """Extract signature from header value.

    Handles common formats like:
    - "sha256=abc123" (GitHub, WhatsApp)
    - "abc123" (plain)

    Args:
        header_value: The header value to parse.
        prefix: Optional prefix to strip (e.g., "sha256=").

    Returns:
        The extracted signature, or None if empty.
    """
    if not header_value:
        return None

    if prefix and header_value.startswith(prefix):
        return header_value[len(prefix) :]

    return header_value


def parse_stripe_signature(header_value: str) -> tuple[int, list[str]] | None:
    """Parse Stripe signature header format.

    Stripe format: "t=timestamp,v1=signature[,v1=signature...]"

    Args:
        header_value: The Stripe-Signature header value.

    Returns:
        Tuple of (timestamp, v1 signatures), or None if invalid.
    """
    if not header_value:
        return None

    timestamp: str | None = None
    signatures: list[str] = []
    for item in header_value.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value.strip()
        elif key == "v1" and value.strip():
            signatures.append(value.strip())

    if not timestamp or not signatures:
        return None

    try:
        return int(timestamp), signatures
    except ValueError:
        return None


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
