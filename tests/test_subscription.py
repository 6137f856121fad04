"""Tests for webhook subscription handshakes."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from lumio.webhooks.subscription import echo_challenge, verify_subscription_challenge


class TestVerifySubscriptionChallenge:
    """Tests for the hub.* handshake."""

    def test_matching_token_returns_challenge(self):
        result = verify_subscription_challenge("subscribe", "tok", "12345", verify_token="tok")
        assert result == "12345"

    def test_wrong_token_refused(self):
        with capture_logs() as logs:
            result = verify_subscription_challenge("subscribe", "nope", "12345", "tok")

        assert result is None
        assert logs[0]["log_level"] == "warning"

    @pytest.mark.parametrize(
        "mode,token,challenge,verify_token",
        [
            ("unsubscribe", "tok", "1", "tok"),
            (None, "tok", "1", "tok"),
            ("subscribe", None, "1", "tok"),
            ("subscribe", "tok", None, "tok"),
            ("subscribe", "tok", "1", None),
            ("subscribe", "", "1", ""),
        ],
    )
    def test_refused(self, mode, token, challenge, verify_token):
        """Test every incomplete or mismatched handshake is refused."""
        assert verify_subscription_challenge(mode, token, challenge, verify_token) is None


class TestEchoChallenge:
    """Tests for echo_challenge."""

    def test_echo(self):
        assert echo_challenge("abc") == "abc"

    def test_missing(self):
        assert echo_challenge(None) is None
        assert echo_challenge("") is None
