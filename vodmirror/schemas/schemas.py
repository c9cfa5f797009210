"""
VodMirror API Schemas: Pydantic v2 models for request/response validation.

Durations are stored as integer seconds; the ``H:MM:SS`` rendering happens
here and nowhere else.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from vodmirror.models.models import CatalogStatus
from vodmirror.services.sync.reconciliation_service import SyncOutcome


def format_duration(seconds: Optional[int]) -> str:
    """``M:SS`` below an hour, ``H:MM:SS`` above; ``0:00`` when unknown."""
    if not seconds or seconds <= 0:
        return "0:00"
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════

class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail


# ═══════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════

class CatalogEntrySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    remote_asset_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    static_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_seconds: int = 0
    file_size: int = 0
    resolution: Optional[str] = None
    view_count: int = 0
    like_count: int = 0
    status: CatalogStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)

    @computed_field
    @property
    def source(self) -> str:
        return "remote" if self.remote_asset_id else "static"


class CatalogEntryCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    static_url: Optional[str] = Field(None, max_length=1024)
    remote_asset_id: Optional[str] = Field(None, max_length=100)
    description: str = ""
    thumbnail_url: Optional[str] = None
    duration_seconds: int = Field(0, ge=0)
    file_size: int = Field(0, ge=0)
    resolution: Optional[str] = Field(None, max_length=20)


class CatalogEntryUpdate(BaseModel):
    """Fields left out (or null) keep their stored value."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    static_url: Optional[str] = Field(None, min_length=1, max_length=1024)
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    file_size: Optional[int] = Field(None, ge=0)
    resolution: Optional[str] = Field(None, max_length=20)
    status: Optional[CatalogStatus] = None


# ═══════════════════════════════════════════════════════════════════════
# Sync
# ═══════════════════════════════════════════════════════════════════════

class SyncItemResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: SyncOutcome
    remote_asset_id: str
    database_id: Optional[int] = None
    title: Optional[str] = None
    error: Optional[str] = None
    fields_changed: List[str] = []


class SyncReportSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    total_remote_assets: int = 0
    total_local_entries: int = 0
    listing_truncated: bool = False
    deletes_skipped: int = 0
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    insert_errors: int = 0
    update_errors: int = 0
    delete_errors: int = 0
    results: List[SyncItemResultSchema] = []


# ═══════════════════════════════════════════════════════════════════════
# Playback / views
# ═══════════════════════════════════════════════════════════════════════

class PlaybackResponse(CamelModel):
    id: int
    title: str
    play_url: str
    source: str
    definition: Optional[str] = None
    format: Optional[str] = None
    expires_in_seconds: Optional[int] = None


class ViewRecordRequest(BaseModel):
    device_type: str = Field("unknown", max_length=20)
    duration_watched: int = Field(0, ge=0)


class ViewCountChangeResponse(CamelModel):
    video_id: int
    old_view_count: int
    new_view_count: int
    increment: int


class ViewCountResponse(CamelModel):
    video_id: int
    title: str
    view_count: int
    last_updated: Optional[datetime] = None


# ═══════════════════════════════════════════════════════════════════════
# Remote provider diagnostics
# ═══════════════════════════════════════════════════════════════════════

class VodConnectionSchema(BaseModel):
    success: bool
    endpoint: str
    total_count: Optional[int] = None
    error: Optional[ErrorDetail] = None


class RemoteAssetSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    remote_asset_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: int = 0
    cover_url: Optional[str] = None
    status: Optional[str] = None
    creation_time: Optional[str] = None
    size: int = 0


# ═══════════════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════════════

class PopularVideoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int = 0
    id: int
    title: str
    thumbnail_url: Optional[str] = None
    duration_seconds: int = 0
    view_count: int = 0
    like_count: int = 0
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)


class StatsOverviewSchema(BaseModel):
    total_videos: int
    total_views: int
    today_views: int
    week_views: int
    total_duration_seconds: int
    average_views_per_video: int
    most_popular: Optional[PopularVideoSchema] = None

    @computed_field
    @property
    def total_duration(self) -> str:
        return format_duration(self.total_duration_seconds)


class DailyViewsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    views: int


class DeviceShareSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_type: str
    count: int
    percentage: float


class WatchDurationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    video_id: int
    title: str
    duration_seconds: int
    avg_watched_seconds: int
    total_views: int
    completion_rate: float

    @computed_field
    @property
    def avg_watched(self) -> str:
        return format_duration(self.avg_watched_seconds)


class RecentViewSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    video_id: int
    title: str
    thumbnail_url: Optional[str] = None
    viewed_at: Optional[datetime] = None
    device_type: Optional[str] = None
    duration_watched: int = 0
