"""Shared fixtures for webhook tests."""

from __future__ import annotations

import pytest
import structlog

from lumio.core.config import WebhookSecuritySettings, clear_config
from lumio.webhooks import WebhookSecurity

NOW = 1_700_000_000


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_global_state():
    yield
    structlog.reset_defaults()
    clear_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> WebhookSecuritySettings:
    return WebhookSecuritySettings(
        replay_cache_size=1000,
        cleanup_interval=300.0,
        replay_max_age=600,
        timestamp_tolerance=300,
    )


@pytest.fixture
def security(settings: WebhookSecuritySettings, clock: FakeClock) -> WebhookSecurity:
    return WebhookSecurity(settings=settings, clock=clock)
