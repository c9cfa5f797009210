"""
VodMirror API dependencies.

Process-wide collaborators (remote client, URL cache, sync lock) live on
``app.state`` and are created in the application lifespan; everything else is
assembled per request from them.
"""
from __future__ import annotations

import asyncio

from fastapi import Depends, Request

from vodmirror.core.config import get_settings
from vodmirror.core.database import async_session_factory
from vodmirror.services.cache.url_cache import UrlCache
from vodmirror.services.catalog.catalog_store import CatalogStore
from vodmirror.services.playback.playback_resolver import PlaybackResolver
from vodmirror.services.remote.vod_client import RemoteCatalogClient
from vodmirror.services.sync.reconciliation_service import ReconciliationEngine


def get_catalog_store() -> CatalogStore:
    return CatalogStore(async_session_factory)


def get_remote_client(request: Request) -> RemoteCatalogClient:
    return request.app.state.remote_client


def get_url_cache(request: Request) -> UrlCache:
    return request.app.state.url_cache


def get_sync_lock(request: Request) -> asyncio.Lock:
    return request.app.state.sync_lock


def get_playback_resolver(
    remote: RemoteCatalogClient = Depends(get_remote_client),
    store: CatalogStore = Depends(get_catalog_store),
    url_cache: UrlCache = Depends(get_url_cache),
) -> PlaybackResolver:
    return PlaybackResolver(remote, store, url_cache)


def get_reconciliation_engine(
    remote: RemoteCatalogClient = Depends(get_remote_client),
    store: CatalogStore = Depends(get_catalog_store),
) -> ReconciliationEngine:
    settings = get_settings()
    return ReconciliationEngine(
        remote,
        store,
        default_title=settings.sync_default_title,
        skip_deletes_on_truncated_listing=settings.sync_skip_deletes_on_truncated_listing,
    )
