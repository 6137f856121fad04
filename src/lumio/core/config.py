"""Configuration types with environment variable support.

All settings can be configured via environment variables with the LUMIO_ prefix.
Example: LUMIO_REPLAY_CACHE_SIZE=5000 sets replay_cache_size to 5000.

Mapping-valued settings are read as JSON:
    LUMIO_PROVIDER_SECRETS='{"stripe": "whsec_...", "github": "gh-secret"}'
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


class WebhookSecuritySettings(BaseSettings):
    """Webhook verification and replay protection settings.

    All settings can be overridden via environment variables:
    - LUMIO_REPLAY_CACHE_SIZE: Maximum replay cache entries before FIFO eviction
    - LUMIO_CLEANUP_INTERVAL: Seconds between replay cache sweeps
    - LUMIO_REPLAY_MAX_AGE: Age in seconds after which a sweep drops an entry
    - LUMIO_TIMESTAMP_TOLERANCE: Allowed clock skew for Stripe/Slack
    - LUMIO_PROVIDER_SECRETS: JSON object of provider name to signing secret
    """

    model_config = SettingsConfigDict(
        env_prefix="LUMIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    replay_cache_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum replay cache entries. Oldest inserted entry is evicted first.",
    )
    cleanup_interval: float = Field(
        default=300.0,
        gt=0,
        description="Replay cache sweep interval in seconds (5 minutes default).",
    )
    replay_max_age: int = Field(
        default=600,
        ge=0,
        description="Entries older than this many seconds are swept (10 minutes default).",
    )
    timestamp_tolerance: int = Field(
        default=300,
        ge=0,
        description="Allowed clock skew in seconds for timestamped signatures.",
    )
    ip_whitelist: list[str] = Field(
        default_factory=list,
        description="Exact client IPs allowed to deliver webhooks. Empty disables the check.",
    )
    provider_secrets: dict[str, str] = Field(
        default_factory=dict,
        repr=False,
        description="Signing secret per provider name.",
    )
    algorithms: dict[str, str] = Field(
        default_factory=dict,
        description="Hash algorithm per provider for the generic HMAC path.",
    )
    whatsapp_verify_token: str | None = Field(
        default=None,
        repr=False,
        description="Token expected in the WhatsApp hub.verify_token handshake.",
    )

    def get_secret(self, provider: str) -> str | None:
        """Signing secret configured for a provider, if any."""
        return self.provider_secrets.get(provider) or None


class ServerSettings(BaseSettings):
    """Webhook receiver HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="LUMIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Receiver bind host")
    port: int = Field(default=8000, description="Receiver bind port")
    log_level: str = Field(default="info", description="Log level (debug, info, warning, error)")
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")


class LumioConfig(BaseSettings):
    """Master configuration combining all settings.

    Use get_config() to get a cached instance.

    Example:
        config = get_config()
        print(config.webhooks.replay_cache_size)
        print(config.server.port)
    """

    model_config = SettingsConfigDict(
        env_prefix="LUMIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    webhooks: WebhookSecuritySettings = Field(default_factory=WebhookSecuritySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @classmethod
    def from_file(cls, path: str | Path) -> LumioConfig:
        """Build a config from a YAML/TOML file with ``webhooks`` and ``server`` sections.

        Environment variables fill in anything the file leaves out.
        """
        data = load_config_from_file(path)
        return cls(
            webhooks=WebhookSecuritySettings(**(data.get("webhooks") or {})),
            server=ServerSettings(**(data.get("server") or {})),
        )

    def to_display_dict(self) -> dict[str, Any]:
        """Export configuration for display, with secrets masked."""
        return {
            "webhooks": {
                "replay_cache_size": self.webhooks.replay_cache_size,
                "cleanup_interval": self.webhooks.cleanup_interval,
                "replay_max_age": self.webhooks.replay_max_age,
                "timestamp_tolerance": self.webhooks.timestamp_tolerance,
                "ip_whitelist": list(self.webhooks.ip_whitelist),
                "providers": sorted(self.webhooks.provider_secrets),
                "algorithms": dict(self.webhooks.algorithms),
            },
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "log_level": self.server.log_level,
                "json_logs": self.server.json_logs,
            },
        }


_config: LumioConfig | None = None


def get_config() -> LumioConfig:
    """Get the global configuration instance.

    Returns a cached instance of LumioConfig that reads from environment variables.
    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = LumioConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
