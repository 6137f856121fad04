from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

WEBHOOK_VERIFICATIONS = Counter(
    "lumio_webhook_verifications_total",
    "Total webhook verifications",
    ["provider", "status"],
)

# Signature-valid deliveries rejected because the timestamp was already seen
WEBHOOK_REPLAYS = Counter(
    "lumio_webhook_replay_rejections_total",
    "Webhooks rejected as replays",
    ["provider"],
)

# Process-wide: reports the cache of whichever WebhookSecurity instance wrote last
REPLAY_CACHE_ENTRIES = Gauge(
    "lumio_webhook_replay_cache_entries",
    "Current replay cache entries",
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
