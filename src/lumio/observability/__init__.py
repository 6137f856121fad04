from lumio.observability.metrics import (
    REPLAY_CACHE_ENTRIES,
    WEBHOOK_REPLAYS,
    WEBHOOK_VERIFICATIONS,
    generate_metrics,
    get_content_type,
)

__all__ = [
    "WEBHOOK_VERIFICATIONS",
    "WEBHOOK_REPLAYS",
    "REPLAY_CACHE_ENTRIES",
    "generate_metrics",
    "get_content_type",
]
