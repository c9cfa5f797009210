"""
VodMirror Catalog Store: persistence gateway for catalog entries and view logs.

Every public method is one logical write (or read) in its own session and
transaction. A failure in one call can never poison the next, which is what
lets reconciliation isolate per-item errors. SQLAlchemy failures surface as
``StoreError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vodmirror.core.errors import DuplicateEntry, NotFound, StoreError, ValidationError
from vodmirror.models.models import CatalogEntry, CatalogStatus, ViewLog

logger = logging.getLogger(__name__)

IP_ADDRESS_MAX_LENGTH = 45


@dataclass
class ViewCountChange:
    video_id: int
    old_view_count: int
    new_view_count: int

    @property
    def increment(self) -> int:
        return self.new_view_count - self.old_view_count


# ── Aggregate results ────────────────────────────────────────────────────

@dataclass
class CatalogOverview:
    total_videos: int
    total_views: int
    today_views: int
    week_views: int
    total_duration_seconds: int
    most_popular: Optional[CatalogEntry] = None

    @property
    def average_views_per_video(self) -> int:
        if not self.total_videos:
            return 0
        return round(self.total_views / self.total_videos)


@dataclass
class DailyViews:
    date: str
    views: int


@dataclass
class DeviceShare:
    device_type: str
    count: int
    percentage: float


@dataclass
class WatchDurationStat:
    video_id: int
    title: str
    duration_seconds: int
    avg_watched_seconds: int
    total_views: int
    completion_rate: float


@dataclass
class RecentView:
    id: int
    video_id: int
    title: str
    thumbnail_url: Optional[str]
    viewed_at: Optional[datetime]
    device_type: Optional[str]
    duration_watched: int


class CatalogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Reads ────────────────────────────────────────────────────────────

    async def get(self, entry_id: int) -> Optional[CatalogEntry]:
        try:
            async with self._session_factory() as db:
                return await db.get(CatalogEntry, entry_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load catalog entry {entry_id}: {e}") from e

    async def get_visible(self, entry_id: int) -> CatalogEntry:
        """Entry by id, treating soft-deleted rows as absent."""
        entry = await self.get(entry_id)
        if entry is None or entry.status == CatalogStatus.DELETED:
            raise NotFound(f"video {entry_id} not found", {"video_id": entry_id})
        return entry

    async def list_remote_backed(self) -> List[CatalogEntry]:
        """All entries mirrored from the remote provider, soft-deleted included."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(CatalogEntry)
                    .where(CatalogEntry.remote_asset_id.is_not(None))
                    .where(CatalogEntry.remote_asset_id != "")
                    .order_by(CatalogEntry.id)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list remote-backed entries: {e}") from e

    async def count_view_logs(self, entry_id: int) -> int:
        try:
            async with self._session_factory() as db:
                return await db.scalar(
                    select(func.count(ViewLog.id)).where(ViewLog.video_id == entry_id)
                ) or 0
        except SQLAlchemyError as e:
            raise StoreError(f"failed to count view logs for {entry_id}: {e}") from e

    # ── Reconciliation writes ────────────────────────────────────────────

    async def insert_remote(
        self,
        remote_asset_id: str,
        *,
        title: str,
        description: str,
        duration_seconds: int,
        thumbnail_url: Optional[str],
        file_size: int = 0,
    ) -> CatalogEntry:
        entry = CatalogEntry(
            remote_asset_id=remote_asset_id,
            title=title,
            description=description,
            duration_seconds=duration_seconds,
            thumbnail_url=thumbnail_url,
            file_size=file_size,
            status=CatalogStatus.ACTIVE,
            view_count=0,
            like_count=0,
        )
        return await self._add(entry)

    async def apply_remote_update(self, entry_id: int, fields: Dict[str, Any]) -> None:
        """Write the given metadata fields; callers pass only changed ones."""
        if not fields:
            return
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(CatalogEntry).where(CatalogEntry.id == entry_id).values(**fields)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to update catalog entry {entry_id}: {e}") from e

    async def hard_delete(self, entry_id: int) -> int:
        """Physically remove an entry and its view logs together; returns logs removed."""
        try:
            async with self._session_factory() as db:
                logs = await db.execute(delete(ViewLog).where(ViewLog.video_id == entry_id))
                await db.execute(delete(CatalogEntry).where(CatalogEntry.id == entry_id))
                await db.commit()
                logger.info(f"Hard-deleted catalog entry {entry_id} with {logs.rowcount or 0} view log(s)")
                return logs.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"failed to delete catalog entry {entry_id}: {e}") from e

    # ── Playback writes ──────────────────────────────────────────────────

    async def cache_play_url(self, entry_id: int, play_url: str) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(CatalogEntry)
                    .where(CatalogEntry.id == entry_id)
                    .values(cached_play_url=play_url)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to cache play url for {entry_id}: {e}") from e

    async def record_view(
        self,
        entry_id: int,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        duration_watched: int = 0,
        device_type: Optional[str] = None,
    ) -> ViewCountChange:
        """Atomically bump view_count and append a ViewLog in one transaction.

        The increment is ``view_count = view_count + 1`` evaluated by the
        database, so concurrent playbacks never lose updates. The UPDATE is the
        first statement of the transaction: it takes the write lock before
        anything is read.
        """
        try:
            async with self._session_factory() as db:
                new_count = await db.scalar(
                    update(CatalogEntry)
                    .where(CatalogEntry.id == entry_id)
                    .where(CatalogEntry.status != CatalogStatus.DELETED)
                    .values(view_count=CatalogEntry.view_count + 1)
                    .returning(CatalogEntry.view_count)
                    .execution_options(synchronize_session=False)
                )
                if new_count is None:
                    await db.rollback()
                    raise NotFound(f"video {entry_id} not found", {"video_id": entry_id})

                db.add(ViewLog(
                    video_id=entry_id,
                    ip_address=(ip_address or "")[:IP_ADDRESS_MAX_LENGTH] or None,
                    user_agent=user_agent,
                    duration_watched=max(int(duration_watched or 0), 0),
                    device_type=device_type,
                ))
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to record view for {entry_id}: {e}") from e

        return ViewCountChange(video_id=entry_id, old_view_count=new_count - 1, new_view_count=new_count)

    # ── Direct catalog writes ────────────────────────────────────────────

    async def create_entry(
        self,
        *,
        title: str,
        static_url: Optional[str] = None,
        remote_asset_id: Optional[str] = None,
        description: str = "",
        thumbnail_url: Optional[str] = None,
        duration_seconds: int = 0,
        file_size: int = 0,
        resolution: Optional[str] = None,
        status: CatalogStatus = CatalogStatus.ACTIVE,
    ) -> CatalogEntry:
        """Direct insertion; exactly one of ``static_url`` / ``remote_asset_id`` must be set."""
        if bool(static_url) == bool(remote_asset_id):
            raise ValidationError(
                "exactly one of static_url or remote_asset_id is required",
                {"static_url": static_url, "remote_asset_id": remote_asset_id},
            )
        entry = CatalogEntry(
            title=title,
            static_url=static_url,
            remote_asset_id=remote_asset_id,
            description=description,
            thumbnail_url=thumbnail_url,
            duration_seconds=duration_seconds,
            file_size=file_size,
            resolution=resolution,
            status=status,
            view_count=0,
            like_count=0,
        )
        return await self._add(entry)

    async def soft_delete(self, entry_id: int) -> None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(CatalogEntry)
                    .where(CatalogEntry.id == entry_id)
                    .where(CatalogEntry.status != CatalogStatus.DELETED)
                    .values(status=CatalogStatus.DELETED)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to delete catalog entry {entry_id}: {e}") from e
        if not result.rowcount:
            raise NotFound(f"video {entry_id} not found", {"video_id": entry_id})

    async def update_entry(self, entry_id: int, fields: Dict[str, Any]) -> CatalogEntry:
        """Admin metadata edit. ``None`` values leave the column unchanged.

        A remote-backed entry cannot take a ``static_url`` and a static entry
        cannot lose its URL: each entry keeps exactly one playback source.
        """
        changes = {k: v for k, v in fields.items() if v is not None}
        try:
            async with self._session_factory() as db:
                entry = await db.get(CatalogEntry, entry_id)
                if entry is None:
                    raise NotFound(f"video {entry_id} not found", {"video_id": entry_id})
                if "static_url" in changes and (entry.remote_asset_id or not changes["static_url"]):
                    raise ValidationError(
                        "static_url can only replace the url of a static entry",
                        {"video_id": entry_id, "remote_asset_id": entry.remote_asset_id},
                    )
                for name, value in changes.items():
                    setattr(entry, name, value)
                await db.commit()
                await db.refresh(entry)
                logger.info(f"Updated catalog entry {entry_id}: {sorted(changes)}")
                return entry
        except SQLAlchemyError as e:
            raise StoreError(f"failed to update catalog entry {entry_id}: {e}") from e

    # ── Aggregates ───────────────────────────────────────────────────────

    async def overview(self, now: Optional[datetime] = None) -> CatalogOverview:
        """Totals over active entries plus today's and last week's views."""
        now = now or datetime.now(timezone.utc)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        active = CatalogEntry.status == CatalogStatus.ACTIVE
        try:
            async with self._session_factory() as db:
                total_videos, total_views, total_duration = (await db.execute(
                    select(
                        func.count(CatalogEntry.id),
                        func.coalesce(func.sum(CatalogEntry.view_count), 0),
                        func.coalesce(func.sum(CatalogEntry.duration_seconds), 0),
                    ).where(active)
                )).one()
                today_views = await db.scalar(
                    select(func.count(ViewLog.id)).where(ViewLog.viewed_at >= start_of_day)
                )
                week_views = await db.scalar(
                    select(func.count(ViewLog.id)).where(ViewLog.viewed_at >= now - timedelta(days=7))
                )
                most_popular = await db.scalar(
                    select(CatalogEntry).where(active)
                    .order_by(CatalogEntry.view_count.desc(), CatalogEntry.id).limit(1)
                )
        except SQLAlchemyError as e:
            raise StoreError(f"failed to compute catalog overview: {e}") from e

        return CatalogOverview(
            total_videos=int(total_videos or 0),
            total_views=int(total_views or 0),
            today_views=int(today_views or 0),
            week_views=int(week_views or 0),
            total_duration_seconds=int(total_duration or 0),
            most_popular=most_popular,
        )

    async def popular(self, limit: int = 10) -> List[CatalogEntry]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(CatalogEntry)
                    .where(CatalogEntry.status == CatalogStatus.ACTIVE)
                    .order_by(CatalogEntry.view_count.desc(), CatalogEntry.id)
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list popular entries: {e}") from e

    async def daily_views(self, days: int, now: Optional[datetime] = None) -> List[DailyViews]:
        """View counts per UTC day for the last ``days`` days, oldest first, gaps as 0."""
        now = now or datetime.now(timezone.utc)
        first_day = (now - timedelta(days=days - 1)).date()
        since = datetime.combine(first_day, datetime.min.time(), tzinfo=timezone.utc)
        day = func.date(ViewLog.viewed_at)
        try:
            async with self._session_factory() as db:
                rows = await db.execute(
                    select(day, func.count(ViewLog.id))
                    .where(ViewLog.viewed_at >= since)
                    .group_by(day)
                )
                # SQLite returns the day as text, PostgreSQL as a date
                counts = {str(d)[:10]: int(n) for d, n in rows}
        except SQLAlchemyError as e:
            raise StoreError(f"failed to compute daily views: {e}") from e

        dates = [(first_day + timedelta(days=i)).isoformat() for i in range(days)]
        return [DailyViews(date=d, views=counts.get(d, 0)) for d in dates]

    async def device_breakdown(self, days: int, now: Optional[datetime] = None) -> List[DeviceShare]:
        now = now or datetime.now(timezone.utc)
        try:
            async with self._session_factory() as db:
                rows = await db.execute(
                    select(ViewLog.device_type, func.count(ViewLog.id))
                    .where(ViewLog.viewed_at >= now - timedelta(days=days))
                    .group_by(ViewLog.device_type)
                )
                counts: Dict[str, int] = {}
                for device_type, n in rows:
                    key = device_type or "unknown"
                    counts[key] = counts.get(key, 0) + int(n)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to compute device breakdown: {e}") from e

        total = sum(counts.values())
        shares = [
            DeviceShare(device_type=k, count=n, percentage=round(n * 100.0 / total, 2))
            for k, n in counts.items()
        ]
        return sorted(shares, key=lambda s: (-s.count, s.device_type))

    async def watch_duration(
        self, days: int, limit: int = 20, now: Optional[datetime] = None,
    ) -> List[WatchDurationStat]:
        """Average watched time per active entry, best completion rate first."""
        now = now or datetime.now(timezone.utc)
        try:
            async with self._session_factory() as db:
                rows = await db.execute(
                    select(
                        CatalogEntry.id,
                        CatalogEntry.title,
                        CatalogEntry.duration_seconds,
                        func.avg(ViewLog.duration_watched),
                        func.count(ViewLog.id),
                    )
                    .join(ViewLog, ViewLog.video_id == CatalogEntry.id)
                    .where(CatalogEntry.status == CatalogStatus.ACTIVE)
                    .where(ViewLog.viewed_at >= now - timedelta(days=days))
                    .group_by(CatalogEntry.id, CatalogEntry.title, CatalogEntry.duration_seconds)
                )
                stats = []
                for entry_id, title, duration, avg_watched, views in rows:
                    avg_watched = float(avg_watched or 0)
                    completion = round(avg_watched * 100.0 / duration, 2) if duration else 0.0
                    stats.append(WatchDurationStat(
                        video_id=entry_id,
                        title=title,
                        duration_seconds=duration or 0,
                        avg_watched_seconds=int(round(avg_watched)),
                        total_views=int(views),
                        completion_rate=completion,
                    ))
        except SQLAlchemyError as e:
            raise StoreError(f"failed to compute watch duration: {e}") from e

        stats.sort(key=lambda s: (-s.completion_rate, s.video_id))
        return stats[:limit]

    async def recent_views(self, limit: int = 20) -> List[RecentView]:
        try:
            async with self._session_factory() as db:
                rows = await db.execute(
                    select(ViewLog, CatalogEntry.title, CatalogEntry.thumbnail_url)
                    .join(CatalogEntry, ViewLog.video_id == CatalogEntry.id)
                    .order_by(ViewLog.viewed_at.desc(), ViewLog.id.desc())
                    .limit(limit)
                )
                return [
                    RecentView(
                        id=log.id,
                        video_id=log.video_id,
                        title=title,
                        thumbnail_url=thumbnail_url,
                        viewed_at=log.viewed_at,
                        device_type=log.device_type,
                        duration_watched=log.duration_watched or 0,
                    )
                    for log, title, thumbnail_url in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list recent views: {e}") from e

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _add(self, entry: CatalogEntry) -> CatalogEntry:
        try:
            async with self._session_factory() as db:
                db.add(entry)
                await db.commit()
                await db.refresh(entry)
                return entry
        except IntegrityError as e:
            raise DuplicateEntry(
                f"remote asset {entry.remote_asset_id} is already cataloged",
                {"remote_asset_id": entry.remote_asset_id},
            ) from e
        except SQLAlchemyError as e:
            raise StoreError(f"failed to insert catalog entry: {e}") from e
