"""
VodMirror API: video routes (detail, playback, views, direct catalog writes).
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from vodmirror.api.deps import get_catalog_store, get_playback_resolver
from vodmirror.schemas.schemas import (
    CatalogEntryCreate,
    CatalogEntrySchema,
    CatalogEntryUpdate,
    PlaybackResponse,
    ViewCountChangeResponse,
    ViewCountResponse,
    ViewRecordRequest,
)
from vodmirror.services.catalog.catalog_store import CatalogStore, ViewCountChange
from vodmirror.services.playback.playback_resolver import PlaybackResolver

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/videos", tags=["Videos"])


def client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def _change_response(change: ViewCountChange) -> ViewCountChangeResponse:
    return ViewCountChangeResponse(
        video_id=change.video_id,
        old_view_count=change.old_view_count,
        new_view_count=change.new_view_count,
        increment=change.increment,
    )


@router.post("", response_model=CatalogEntrySchema, status_code=201)
async def create_video(
    body: CatalogEntryCreate,
    store: CatalogStore = Depends(get_catalog_store),
):
    """Insert a catalog entry directly (static URL or a known remote asset)."""
    entry = await store.create_entry(
        title=body.title.strip(),
        static_url=body.static_url,
        remote_asset_id=body.remote_asset_id,
        description=body.description,
        thumbnail_url=body.thumbnail_url,
        duration_seconds=body.duration_seconds,
        file_size=body.file_size,
        resolution=body.resolution,
    )
    logger.info(f"Created catalog entry {entry.id} ({'remote' if entry.remote_asset_id else 'static'})")
    return CatalogEntrySchema.model_validate(entry)


@router.get("/{video_id}", response_model=CatalogEntrySchema)
async def get_video(
    video_id: int,
    store: CatalogStore = Depends(get_catalog_store),
    resolver: PlaybackResolver = Depends(get_playback_resolver),
):
    """Video detail; remote covers come through the thumbnail cache."""
    entry = await store.get_visible(video_id)
    detail = CatalogEntrySchema.model_validate(entry)
    detail.thumbnail_url = await resolver.resolve_thumbnail(entry)
    return detail


@router.put("/{video_id}", response_model=CatalogEntrySchema)
async def update_video(
    video_id: int,
    body: CatalogEntryUpdate,
    store: CatalogStore = Depends(get_catalog_store),
):
    """Edit stored metadata. The remote asset id is not editable."""
    entry = await store.update_entry(video_id, body.model_dump(exclude_unset=True))
    return CatalogEntrySchema.model_validate(entry)


@router.delete("/{video_id}")
async def delete_video(video_id: int, store: CatalogStore = Depends(get_catalog_store)):
    """Soft delete: the row stays, marked ``deleted``."""
    await store.soft_delete(video_id)
    return {"success": True, "id": video_id, "status": "deleted"}


@router.get("/{video_id}/play", response_model=PlaybackResponse)
async def play_video(
    video_id: int,
    resolver: PlaybackResolver = Depends(get_playback_resolver),
):
    info = await resolver.resolve(video_id)
    return PlaybackResponse(
        id=info.id,
        title=info.title,
        play_url=info.play_url,
        source=info.source.value,
        definition=info.definition,
        format=info.format,
        expires_in_seconds=info.expires_in_seconds,
    )


@router.get("/{video_id}/views", response_model=ViewCountResponse)
async def get_view_count(video_id: int, store: CatalogStore = Depends(get_catalog_store)):
    entry = await store.get_visible(video_id)
    return ViewCountResponse(
        video_id=entry.id,
        title=entry.title,
        view_count=entry.view_count,
        last_updated=entry.updated_at,
    )


@router.patch("/{video_id}/views", response_model=ViewCountChangeResponse)
async def increment_views(
    video_id: int,
    request: Request,
    store: CatalogStore = Depends(get_catalog_store),
):
    """Atomically add one view and log it."""
    change = await store.record_view(
        video_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return _change_response(change)


@router.post("/{video_id}/view", response_model=ViewCountChangeResponse)
async def record_view(
    video_id: int,
    body: ViewRecordRequest,
    request: Request,
    store: CatalogStore = Depends(get_catalog_store),
):
    """Record a view with watch details reported by the player."""
    change = await store.record_view(
        video_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        duration_watched=body.duration_watched,
        device_type=body.device_type,
    )
    return _change_response(change)
