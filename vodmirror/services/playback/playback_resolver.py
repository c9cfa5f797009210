"""
VodMirror Playback Resolver: turn a catalog id into something playable.

  - Remote entries: a signed play URL is requested fresh on every call. Play
    URLs expire after one hour, so they are never served from the UrlCache.
    The resolved URL is written back onto the entry as a display fallback;
    that write is best-effort and cannot fail the resolution.
  - Static entries: the stored URL is returned as is, with no remote call.

Thumbnails take the cached path: cover URLs are kept in the UrlCache under
``thumbnail:<remote_asset_id>`` and fall back to the stored thumbnail when the
provider cannot be reached.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from vodmirror.core.errors import StoreError, ValidationError
from vodmirror.core.metrics import PLAYBACK_RESOLUTIONS_TOTAL
from vodmirror.models.models import CatalogEntry
from vodmirror.services.cache.url_cache import UrlCache
from vodmirror.services.catalog.catalog_store import CatalogStore
from vodmirror.services.remote.vod_client import RemoteCatalogClient

logger = logging.getLogger(__name__)


class PlaybackSource(str, enum.Enum):
    REMOTE = "remote"
    STATIC = "static"


@dataclass
class PlaybackInfo:
    id: int
    title: str
    play_url: str
    source: PlaybackSource
    definition: Optional[str] = None
    format: Optional[str] = None
    expires_in_seconds: Optional[int] = None


class PlaybackResolver:
    def __init__(self, remote: RemoteCatalogClient, store: CatalogStore, url_cache: UrlCache):
        self.remote = remote
        self.store = store
        self.url_cache = url_cache

    async def resolve(self, catalog_id: int) -> PlaybackInfo:
        """Playable URL for a catalog entry.

        Raises ``NotFound`` for missing or soft-deleted entries, the mapped
        remote error when the provider refuses the play URL, and
        ``ValidationError`` for an entry with no playable source.
        """
        entry = await self.store.get_visible(catalog_id)

        if entry.remote_asset_id:
            return await self._resolve_remote(entry)

        if entry.static_url:
            PLAYBACK_RESOLUTIONS_TOTAL.labels(source=PlaybackSource.STATIC.value, outcome="ok").inc()
            return PlaybackInfo(
                id=entry.id,
                title=entry.title,
                play_url=entry.static_url,
                source=PlaybackSource.STATIC,
            )

        raise ValidationError(
            f"video {catalog_id} has neither a remote asset id nor a static url",
            {"video_id": catalog_id},
        )

    async def _resolve_remote(self, entry: CatalogEntry) -> PlaybackInfo:
        result = await self.remote.get_play_url(entry.remote_asset_id)
        if not result.ok:
            PLAYBACK_RESOLUTIONS_TOTAL.labels(source=PlaybackSource.REMOTE.value, outcome="error").inc()
            raise result.error.to_catalog_error()

        play = result.value
        try:
            await self.store.cache_play_url(entry.id, play.url)
        except StoreError as e:
            logger.warning(f"Could not persist play url for video {entry.id}, continuing: {e.message}")

        PLAYBACK_RESOLUTIONS_TOTAL.labels(source=PlaybackSource.REMOTE.value, outcome="ok").inc()
        return PlaybackInfo(
            id=entry.id,
            title=entry.title,
            play_url=play.url,
            source=PlaybackSource.REMOTE,
            definition=play.definition,
            format=play.format,
            expires_in_seconds=play.expires_in_seconds,
        )

    async def resolve_thumbnail(self, entry: CatalogEntry) -> Optional[str]:
        """Cover URL for display; never raises on provider failure."""
        if not entry.remote_asset_id:
            return entry.thumbnail_url

        key = UrlCache.thumbnail_key(entry.remote_asset_id)
        cached = self.url_cache.get(key)
        if cached:
            return cached

        info = await self.remote.get_asset_info(entry.remote_asset_id)
        if info.ok and info.value.cover_url:
            self.url_cache.put(key, info.value.cover_url)
            return info.value.cover_url

        logger.info(f"Using stored thumbnail for video {entry.id}")
        return entry.thumbnail_url
