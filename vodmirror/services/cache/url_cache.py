"""
VodMirror UrlCache: in-process TTL map for reissuable URLs (covers, thumbnails).

Lifecycle: one instance per process, created at application startup and
injected into ``PlaybackResolver``. Nothing is persisted; a restart empties it.

Expiry is lazy. An expired entry is reported as a miss and stays in the map
until the next ``put`` for its key overwrites it. Keys come from a bounded id
space (one per active asset), so there is no size-based eviction.

No locking: a concurrent miss on the same key may fetch twice, and the later
``put`` wins. Neither outcome corrupts the map.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from vodmirror.core.metrics import URL_CACHE_LOOKUPS_TOTAL

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: str
    issued_at: float


class UrlCache:
    """Key -> (value, issued_at) with a fixed freshness window."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.issued_at < self.ttl_seconds:
            URL_CACHE_LOOKUPS_TOTAL.labels(result="hit").inc()
            return entry.value
        URL_CACHE_LOOKUPS_TOTAL.labels(result="miss").inc()
        return None

    def put(self, key: str, value: str) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, issued_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def thumbnail_key(remote_asset_id: str) -> str:
        return f"thumbnail:{remote_asset_id}"
