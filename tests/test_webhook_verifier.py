"""Tests for webhook verification primitives."""

from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from lumio.webhooks.verifier import (
    VerificationStatus,
    WebhookConfig,
    WebhookVerification,
    compute_hmac,
    get_header,
    parse_signature_header,
    parse_stripe_signature,
    secure_compare,
    validate_timestamp,
)


class TestComputeHmac:
    """Tests for compute_hmac."""

    def test_hex_digest(self):
        """Test hex output matches hmac module."""
        expected = hmac.new(b"s3cr3t", b'{"objectId":123}', hashlib.sha256).hexdigest()
        assert compute_hmac(b'{"objectId":123}', "s3cr3t") == expected

    def test_base64_digest(self):
        """Test base64 output matches hmac module."""
        raw = hmac.new(b"key", b"body", hashlib.sha256).digest()
        assert compute_hmac(b"body", "key", encoding="base64") == base64.b64encode(raw).decode()

    def test_str_payload_is_utf8(self):
        """Test string payloads hash the same as their UTF-8 bytes."""
        assert compute_hmac("héllo", "key") == compute_hmac("héllo".encode(), "key")

    def test_other_algorithm(self):
        """Test non-default algorithm."""
        expected = hmac.new(b"key", b"body", hashlib.sha512).hexdigest()
        assert compute_hmac(b"body", "key", algorithm="sha512") == expected

    def test_unknown_algorithm_raises(self):
        """Test unsupported algorithm raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported hash algorithm"):
            compute_hmac(b"body", "key", algorithm="not-a-hash")


class TestSecureCompare:
    """Tests for timing-safe comparison."""

    def test_equal(self):
        assert secure_compare("abc123", "abc123") is True

    def test_same_length_mismatch(self):
        """Test same-length wrong value returns False."""
        assert secure_compare("abc123", "abc124") is False

    def test_different_length_mismatch(self):
        """Test different-length value returns False without raising."""
        assert secure_compare("abc123", "abc") is False
        assert secure_compare("", "abc") is False

    def test_non_ascii(self):
        """Test non-ASCII strings compare on their UTF-8 bytes."""
        assert secure_compare("ñ", "ñ") is True
        assert secure_compare("ñ", "n") is False


class TestValidateTimestamp:
    """Tests for validate_timestamp."""

    def test_within_tolerance(self):
        assert validate_timestamp(1000, 300, now=1200) is True
        assert validate_timestamp(1300, 300, now=1000) is True

    def test_boundary_is_inclusive(self):
        assert validate_timestamp(700, 300, now=1000) is True
        assert validate_timestamp(699, 300, now=1000) is False

    def test_future_outside_tolerance(self):
        assert validate_timestamp(1301, 300, now=1000) is False

    def test_fractional_timestamp_not_truncated(self):
        """Test only the current time is floored, not the checked timestamp."""
        assert validate_timestamp(1300.9, 300, now=1000.7) is False
        assert validate_timestamp(699.5, 300, now=1000) is False


class TestParseSignatureHeader:
    """Tests for parse_signature_header."""

    def test_strips_prefix(self):
        assert parse_signature_header("sha256=abc", prefix="sha256=") == "abc"

    def test_without_prefix(self):
        assert parse_signature_header("abc", prefix="sha256=") == "abc"

    def test_empty(self):
        assert parse_signature_header("", prefix="sha256=") is None


class TestParseStripeSignature:
    """Tests for parse_stripe_signature."""

    def test_valid_header(self):
        assert parse_stripe_signature("t=1700000000,v1=abc") == (1700000000, ["abc"])

    def test_multiple_v1(self):
        """Test several v1 entries are all returned."""
        parsed = parse_stripe_signature("t=1,v1=aaa,v0=old,v1=bbb")
        assert parsed == (1, ["aaa", "bbb"])

    def test_whitespace_tolerated(self):
        assert parse_stripe_signature("t=5, v1=abc") == (5, ["abc"])

    @pytest.mark.parametrize(
        "header",
        ["", "v1=abc", "t=1700000000", "t=abc,v1=def", "garbage", "t=,v1="],
    )
    def test_invalid_headers(self, header):
        """Test malformed headers return None."""
        assert parse_stripe_signature(header) is None


class TestHeaders:
    """Tests for header helpers."""

    def test_case_insensitive_lookup(self):
        headers = {"x-hub-signature-256": "sha256=abc"}
        assert get_header(headers, "X-Hub-Signature-256") == "sha256=abc"

    def test_missing_header(self):
        assert get_header({}, "Stripe-Signature") is None


class TestValueTypes:
    """Tests for WebhookConfig and WebhookVerification."""

    def test_config_defaults(self):
        config = WebhookConfig(provider="hubspot", secret="s")
        assert config.algorithm == "sha256"
        assert config.timestamp_tolerance == 300
        assert config.header_name is None

    def test_config_repr_hides_secret(self):
        config = WebhookConfig(provider="hubspot", secret="super-secret-value")
        assert "super-secret-value" not in repr(config)

    def test_verification_bool(self):
        assert bool(WebhookVerification.success("github")) is True
        failed = WebhookVerification.failure(
            "github", VerificationStatus.INVALID_SIGNATURE, "Signature mismatch"
        )
        assert bool(failed) is False

    def test_to_dict(self):
        result = WebhookVerification.failure(
            "stripe",
            VerificationStatus.EXPIRED_TIMESTAMP,
            "Timestamp outside tolerance",
            timestamp=5,
        )
        assert result.to_dict() == {
            "is_valid": False,
            "provider": "stripe",
            "status": "expired_timestamp",
            "error": "Timestamp outside tolerance",
            "timestamp": 5,
        }
