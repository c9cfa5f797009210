"""
Prometheus metrics for the catalog mirror.
"""
from prometheus_client import Counter, Histogram

SYNC_ITEMS_TOTAL = Counter(
    "vodmirror_sync_items_total",
    "Per-item reconciliation outcomes",
    ["outcome"],
)

SYNC_DURATION_SECONDS = Histogram(
    "vodmirror_sync_duration_seconds",
    "Wall time of one synchronize() run",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)

REMOTE_CALLS_TOTAL = Counter(
    "vodmirror_remote_calls_total",
    "Calls to the remote VOD provider",
    ["action", "outcome"],
)

URL_CACHE_LOOKUPS_TOTAL = Counter(
    "vodmirror_url_cache_lookups_total",
    "UrlCache lookups",
    ["result"],  # hit | miss
)

PLAYBACK_RESOLUTIONS_TOTAL = Counter(
    "vodmirror_playback_resolutions_total",
    "Resolved playback URLs",
    ["source", "outcome"],
)
