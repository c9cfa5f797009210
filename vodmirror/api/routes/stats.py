"""
VodMirror API: viewing statistics over the local catalog and view log.
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from vodmirror.api.deps import get_catalog_store
from vodmirror.core.config import get_settings
from vodmirror.schemas.schemas import (
    DailyViewsSchema,
    DeviceShareSchema,
    PopularVideoSchema,
    RecentViewSchema,
    StatsOverviewSchema,
    WatchDurationSchema,
)
from vodmirror.services.catalog.catalog_store import CatalogStore

router = APIRouter(prefix="/stats", tags=["Stats"])


def _window(days: Optional[int]) -> int:
    return days or get_settings().stats_window_days


@router.get("/overview", response_model=StatsOverviewSchema)
async def overview(store: CatalogStore = Depends(get_catalog_store)):
    result = await store.overview()
    most_popular = None
    if result.most_popular is not None:
        most_popular = PopularVideoSchema.model_validate(result.most_popular)
        most_popular.rank = 1
    return StatsOverviewSchema(
        total_videos=result.total_videos,
        total_views=result.total_views,
        today_views=result.today_views,
        week_views=result.week_views,
        total_duration_seconds=result.total_duration_seconds,
        average_views_per_video=result.average_views_per_video,
        most_popular=most_popular,
    )


@router.get("/popular", response_model=List[PopularVideoSchema])
async def popular(
    limit: int = Query(10, ge=1, le=100),
    store: CatalogStore = Depends(get_catalog_store),
):
    """Active videos ranked by view count."""
    ranked = []
    for rank, entry in enumerate(await store.popular(limit), start=1):
        item = PopularVideoSchema.model_validate(entry)
        item.rank = rank
        ranked.append(item)
    return ranked


@router.get("/trends", response_model=List[DailyViewsSchema])
async def trends(
    days: Optional[int] = Query(None, ge=1, le=365),
    store: CatalogStore = Depends(get_catalog_store),
):
    """Views per day, oldest first; days without views are included as 0."""
    return [DailyViewsSchema.model_validate(d) for d in await store.daily_views(_window(days))]


@router.get("/devices", response_model=List[DeviceShareSchema])
async def devices(
    days: Optional[int] = Query(None, ge=1, le=365),
    store: CatalogStore = Depends(get_catalog_store),
):
    return [DeviceShareSchema.model_validate(s) for s in await store.device_breakdown(_window(days))]


@router.get("/watch-duration", response_model=List[WatchDurationSchema])
async def watch_duration(
    days: Optional[int] = Query(None, ge=1, le=365),
    limit: int = Query(20, ge=1, le=100),
    store: CatalogStore = Depends(get_catalog_store),
):
    stats = await store.watch_duration(_window(days), limit=limit)
    return [WatchDurationSchema.model_validate(s) for s in stats]


@router.get("/recent-views", response_model=List[RecentViewSchema])
async def recent_views(
    limit: int = Query(20, ge=1, le=100),
    store: CatalogStore = Depends(get_catalog_store),
):
    return [RecentViewSchema.model_validate(v) for v in await store.recent_views(limit)]
