from lumio.core.config import (
    LumioConfig,
    ServerSettings,
    WebhookSecuritySettings,
    clear_config,
    get_config,
    load_config_from_file,
)
from lumio.core.logging import configure_logging

__all__ = [
    # Configuration
    "LumioConfig",
    "ServerSettings",
    "WebhookSecuritySettings",
    "clear_config",
    "get_config",
    "load_config_from_file",
    # Logging
    "configure_logging",
]
