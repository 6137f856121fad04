"""Webhook subscription handshakes.

Some providers confirm a webhook URL with a GET request before they start
delivering events:

- WhatsApp (Meta Graph API) sends ``hub.mode=subscribe``, ``hub.verify_token``
  and ``hub.challenge``; the challenge must be echoed back only when the
  token matches the one configured for the app.
- HubSpot sends ``hub.challenge`` and expects it echoed back verbatim.
"""

from __future__ import annotations

import structlog

from lumio.webhooks.verifier import secure_compare

logger = structlog.get_logger()


def verify_subscription_challenge(
    mode: str | None,
    token: str | None,
    challenge: str | None,
    verify_token: str | None,
) -> str | None:
    """Answer a Meta-style ``hub.*`` subscription handshake.

    Returns:
        The challenge to echo, or None if the handshake must be refused.
    """
    if not verify_token or mode != "subscribe" or token is None or challenge is None:
        logger.warning("Webhook subscription verification failed", mode=mode)
        return None

    if not secure_compare(verify_token, token):
        logger.warning("Webhook subscription verification failed", mode=mode)
        return None

    logger.info("Webhook subscription verified")
    return challenge


def echo_challenge(challenge: str | None) -> str | None:
    return challenge or None
