"""Lumio Webhook Security.

Single entry point for authenticating inbound third-party webhooks:
provider-keyed signature verification, timestamp tolerance, and replay
detection backed by a bounded in-memory cache that is swept periodically.

Usage:
    from lumio.webhooks import WebhookConfig, WebhookSecurity

    security = WebhookSecurity()
    result = security.verify(
        payload=request_body,
        signature=request.headers["Stripe-Signature"],
        config=WebhookConfig(provider="stripe", secret="whsec_..."),
    )

    if not result:
        return 401

The replay cache is process-local. Instances behind a load balancer each
keep their own cache, so a replay routed to a different instance is not
detected.

The replay cache entries gauge is process-wide as well. Run one
WebhookSecurity per process when exporting it.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from lumio.core.config import WebhookSecuritySettings, get_config
from lumio.observability.metrics import (
    REPLAY_CACHE_ENTRIES,
    WEBHOOK_REPLAYS,
    WEBHOOK_VERIFICATIONS,
)
from lumio.webhooks.providers import get_provider
from lumio.webhooks.replay import ReplayCache
from lumio.webhooks.verifier import (
    VerificationStatus,
    WebhookConfig,
    WebhookVerification,
    get_header,
    validate_timestamp,
)

logger = structlog.get_logger()

REPLAY_DETECTED = "Possible replay attack detected"


class WebhookSecurity:
    """Verifies webhook authenticity, freshness and uniqueness.

    ``verify`` never raises: unexpected errors are logged and returned as an
    invalid result. The periodic replay cache sweep runs only between
    ``start()`` and ``stop()``; ``cleanup_replay_cache()`` runs it on demand.
    """

    def __init__(
        self,
        settings: WebhookSecuritySettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize webhook security.

        Args:
            settings: Cache size, sweep interval and age limits. Defaults are
                read from LUMIO_* environment variables.
            clock: Source of the current unix time, injectable for tests.
        """
        self.settings = settings if settings is not None else WebhookSecuritySettings()
        self._clock = clock
        self._replay_cache = ReplayCache(
            max_size=self.settings.replay_cache_size,
            max_age=self.settings.replay_max_age,
        )
        self._cleanup_task: asyncio.Task[None] | None = None

    def verify(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        timestamp: str | int | None = None,
    ) -> WebhookVerification:
        """Verify a webhook signature.

        Args:
            payload: Raw request body.
            signature: Signature header value.
            config: Provider, secret and verification options.
            timestamp: Separate timestamp header value (Slack).

        Returns:
            WebhookVerification with status and details.
        """
        try:
            result = self._verify_by_provider(payload, signature, config, timestamp)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(
                "Webhook verification error",
                provider=config.provider,
                error=message,
                exc_info=True,
            )
            WEBHOOK_VERIFICATIONS.labels(
                provider=config.provider,
                status=VerificationStatus.ERROR.value,
            ).inc()
            return WebhookVerification.failure(
                config.provider,
                VerificationStatus.ERROR,
                message,
            )

        self._record(result)
        return result

    def verify_request(
        self,
        payload: bytes | str,
        headers: Mapping[str, str],
        config: WebhookConfig,
    ) -> WebhookVerification:
        """Verify a webhook using the provider's signature (and timestamp) headers.

        Header lookup is case-insensitive. ``config.header_name`` and
        ``config.timestamp_header_name`` override the provider defaults.
        """
        provider = get_provider(config.provider)
        signature_header = config.header_name or provider.signature_header
        signature = get_header(headers, signature_header)

        if not signature:
            result = WebhookVerification.failure(
                config.provider,
                VerificationStatus.MISSING_SIGNATURE,
                f"Missing {signature_header} header",
            )
            self._record(result)
            return result

        timestamp = None
        timestamp_header = config.timestamp_header_name or provider.timestamp_header
        if timestamp_header:
            timestamp = get_header(headers, timestamp_header)

        return self.verify(payload, signature, config, timestamp=timestamp)

    def config_for(self, provider: str) -> WebhookConfig | None:
        """Build a WebhookConfig from settings, or None when no secret is configured."""
        secret = self.settings.get_secret(provider)
        if secret is None:
            return None
        return WebhookConfig(
            provider=provider,
            secret=secret,
            algorithm=self.settings.algorithms.get(provider, "sha256"),
            timestamp_tolerance=self.settings.timestamp_tolerance,
        )

    def _verify_by_provider(
        self,
        payload: bytes | str,
        signature: str,
        config: WebhookConfig,
        timestamp: str | int | None,
    ) -> WebhookVerification:
        provider = get_provider(config.provider)
        result = provider.verify(
            payload,
            signature,
            config,
            timestamp=timestamp,
            now=self._clock(),
        )

        if not (result.is_valid and provider.replay_protected and result.timestamp is not None):
            return result

        key = ReplayCache.make_key(provider.name, result.timestamp)
        fresh = self._replay_cache.check_and_store(key, result.timestamp)
        REPLAY_CACHE_ENTRIES.set(len(self._replay_cache))

        if fresh:
            return result

        WEBHOOK_REPLAYS.labels(provider=provider.name).inc()
        return WebhookVerification.failure(
            result.provider,
            VerificationStatus.REPLAY_DETECTED,
            REPLAY_DETECTED,
            timestamp=result.timestamp,
        )

    def _record(self, result: WebhookVerification) -> None:
        WEBHOOK_VERIFICATIONS.labels(
            provider=result.provider,
            status=result.status.value,
        ).inc()

        if result.is_valid:
            logger.info("Webhook signature verified", provider=result.provider)
        else:
            logger.error(
                "Webhook signature verification failed",
                provider=result.provider,
                error=result.error,
                status=result.status.value,
            )

    def validate_ip(self, ip: str, whitelist: list[str]) -> bool:
        """Exact-match IP allowlist check. No CIDR ranges."""
        return ip in whitelist

    def validate_timestamp(self, timestamp: int | float, tolerance_seconds: int = 300) -> bool:
        """Check ``|now - timestamp| <= tolerance_seconds``."""
        return validate_timestamp(timestamp, tolerance_seconds, now=self._clock())

    def get_cache_stats(self) -> dict[str, int]:
        return self._replay_cache.stats()

    def clear_cache(self) -> None:
        """Drop all replay state. Intended for tests."""
        self._replay_cache.clear()
        REPLAY_CACHE_ENTRIES.set(0)
        logger.info("Replay cache cleared")

    def cleanup_replay_cache(self) -> int:
        """Sweep entries older than the configured max age.

        Returns:
            Number of entries removed.
        """
        removed = self._replay_cache.cleanup(now=self._clock())
        REPLAY_CACHE_ENTRIES.set(len(self._replay_cache))
        logger.info(
            "Replay cache cleaned up",
            remaining_entries=len(self._replay_cache),
            removed=removed,
        )
        return removed

    async def _run_cleanup_loop(self) -> None:
        interval = self.settings.cleanup_interval
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup_replay_cache()
            except Exception as e:
                logger.error("Replay cache cleanup error", error=str(e))

    def start(self) -> None:
        """Start the periodic replay cache sweep on the running event loop.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._cleanup_task = loop.create_task(self._run_cleanup_loop())
        logger.info(
            "Replay cache cleanup started",
            interval=self.settings.cleanup_interval,
            max_age=self.settings.replay_max_age,
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep, if running."""
        task = self._cleanup_task
        self._cleanup_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Replay cache cleanup stopped")

    @property
    def running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def __aenter__(self) -> WebhookSecurity:
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()


def create_webhook_security(
    settings: WebhookSecuritySettings | None = None,
) -> WebhookSecurity:
    """Create a WebhookSecurity from explicit settings or the global config."""
    if settings is None:
        settings = get_config().webhooks
    return WebhookSecurity(settings=settings)
