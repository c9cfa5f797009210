"""
CatalogStore tests on a real (SQLite) database.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from vodmirror.core.errors import DuplicateEntry, NotFound, ValidationError
from vodmirror.models.models import CatalogEntry, CatalogStatus, ViewLog


async def _remote_entry(store, asset_id="A", **kwargs):
    return await store.insert_remote(
        asset_id,
        title=kwargs.get("title", f"Video {asset_id}"),
        description=kwargs.get("description", ""),
        duration_seconds=kwargs.get("duration_seconds", 30),
        thumbnail_url=kwargs.get("thumbnail_url"),
    )


class TestViewCounting:
    @pytest.mark.asyncio
    async def test_record_view_returns_old_and_new(self, store):
        entry = await _remote_entry(store)
        change = await store.record_view(entry.id, ip_address="10.0.0.1", user_agent="pytest")

        assert (change.video_id, change.old_view_count, change.new_view_count) == (entry.id, 0, 1)
        assert change.increment == 1
        assert await store.count_view_logs(entry.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_views_are_not_lost(self, store):
        """N concurrent increments yield initial + N and exactly N log rows."""
        entry = await _remote_entry(store)
        await store.record_view(entry.id)
        n = 10

        changes = await asyncio.gather(*(store.record_view(entry.id) for _ in range(n)))

        refreshed = await store.get(entry.id)
        assert refreshed.view_count == 1 + n
        assert await store.count_view_logs(entry.id) == 1 + n
        assert sorted(c.new_view_count for c in changes) == list(range(2, 2 + n))

    @pytest.mark.asyncio
    async def test_missing_entry(self, store):
        with pytest.raises(NotFound):
            await store.record_view(999)

    @pytest.mark.asyncio
    async def test_soft_deleted_entry_takes_no_views(self, store):
        entry = await _remote_entry(store)
        await store.soft_delete(entry.id)

        with pytest.raises(NotFound):
            await store.record_view(entry.id)
        assert await store.count_view_logs(entry.id) == 0

    @pytest.mark.asyncio
    async def test_long_ip_is_truncated(self, store):
        entry = await _remote_entry(store)
        await store.record_view(entry.id, ip_address="f" * 80, device_type="mobile", duration_watched=-3)
        assert await store.count_view_logs(entry.id) == 1


class TestDeletes:
    @pytest.mark.asyncio
    async def test_hard_delete_removes_view_logs(self, store):
        entry = await _remote_entry(store)
        for _ in range(3):
            await store.record_view(entry.id)

        removed = await store.hard_delete(entry.id)

        assert removed == 3
        assert await store.get(entry.id) is None
        assert await store.count_view_logs(entry.id) == 0

    @pytest.mark.asyncio
    async def test_soft_delete_hides_entry(self, store):
        entry = await store.create_entry(title="Clip", static_url="https://static/clip.mp4")
        await store.soft_delete(entry.id)

        assert (await store.get(entry.id)).status == CatalogStatus.DELETED
        with pytest.raises(NotFound):
            await store.get_visible(entry.id)
        with pytest.raises(NotFound):
            await store.soft_delete(entry.id)


class TestInserts:
    @pytest.mark.asyncio
    async def test_insert_remote_defaults(self, store):
        entry = await _remote_entry(store, "X")

        assert entry.id is not None
        assert entry.status == CatalogStatus.ACTIVE
        assert entry.view_count == 0
        assert entry.created_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_remote_id(self, store):
        await _remote_entry(store, "X")
        with pytest.raises(DuplicateEntry):
            await _remote_entry(store, "X")

    @pytest.mark.asyncio
    async def test_create_entry_requires_exactly_one_source(self, store):
        with pytest.raises(ValidationError):
            await store.create_entry(title="neither")
        with pytest.raises(ValidationError):
            await store.create_entry(title="both", static_url="https://s/x.mp4", remote_asset_id="R")

    @pytest.mark.asyncio
    async def test_list_remote_backed_includes_soft_deleted_only_remote(self, store):
        a = await _remote_entry(store, "A")
        b = await _remote_entry(store, "B")
        await store.create_entry(title="static", static_url="https://s/x.mp4")
        await store.soft_delete(b.id)

        listed = await store.list_remote_backed()

        assert [e.remote_asset_id for e in listed] == ["A", "B"]
        assert listed[0].id == a.id

    @pytest.mark.asyncio
    async def test_apply_remote_update_leaves_counters(self, store):
        entry = await _remote_entry(store, "A", title="old")
        await store.record_view(entry.id)

        await store.apply_remote_update(entry.id, {"title": "new", "duration_seconds": 99})

        refreshed = await store.get(entry.id)
        assert refreshed.title == "new"
        assert refreshed.duration_seconds == 99
        assert refreshed.view_count == 1
        assert refreshed.created_at == entry.created_at

    @pytest.mark.asyncio
    async def test_cache_play_url(self, store):
        entry = await _remote_entry(store)
        await store.cache_play_url(entry.id, "https://cdn/a.mp4?auth_key=1")

        refreshed = await store.get(entry.id)
        assert refreshed.cached_play_url == "https://cdn/a.mp4?auth_key=1"
        assert refreshed.static_url is None


class TestUpdates:
    @pytest.mark.asyncio
    async def test_update_entry_changes_only_given_fields(self, store):
        entry = await store.create_entry(title="Clip", static_url="https://static/clip.mp4", description="keep")

        updated = await store.update_entry(entry.id, {"title": "Renamed", "description": None, "file_size": 10})

        assert updated.title == "Renamed"
        assert updated.description == "keep"
        assert updated.file_size == 10

    @pytest.mark.asyncio
    async def test_update_entry_keeps_one_source(self, store):
        remote_backed = await _remote_entry(store, "A")
        static = await store.create_entry(title="Clip", static_url="https://static/clip.mp4")

        with pytest.raises(ValidationError):
            await store.update_entry(remote_backed.id, {"static_url": "https://static/x.mp4"})
        with pytest.raises(ValidationError):
            await store.update_entry(static.id, {"static_url": ""})

        assert (await store.get(remote_backed.id)).static_url is None
        assert (await store.get(static.id)).static_url == "https://static/clip.mp4"

    @pytest.mark.asyncio
    async def test_update_entry_can_restore_status(self, store):
        entry = await _remote_entry(store)
        await store.soft_delete(entry.id)

        restored = await store.update_entry(entry.id, {"status": CatalogStatus.ACTIVE})

        assert restored.status == CatalogStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_update_missing_entry(self, store):
        with pytest.raises(NotFound):
            await store.update_entry(404, {"title": "x"})


# ============================================================================
# Aggregates
# ============================================================================

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


async def _log_view(session_factory, video_id, viewed_at, device_type=None, duration_watched=0):
    async with session_factory() as db:
        db.add(ViewLog(
            video_id=video_id,
            viewed_at=viewed_at,
            device_type=device_type,
            duration_watched=duration_watched,
        ))
        await db.commit()


class TestAggregates:
    @pytest.mark.asyncio
    async def test_overview_windows(self, store, session_factory):
        a = await _remote_entry(store, "A", duration_seconds=100)
        b = await _remote_entry(store, "B", duration_seconds=50)
        gone = await _remote_entry(store, "C", duration_seconds=1000)
        await store.soft_delete(gone.id)
        async with session_factory() as db:
            await db.execute(update(CatalogEntry).where(CatalogEntry.id == b.id).values(view_count=3))
            await db.commit()
        await _log_view(session_factory, a.id, NOW - timedelta(hours=1))
        await _log_view(session_factory, a.id, NOW - timedelta(days=2))
        await _log_view(session_factory, a.id, NOW - timedelta(days=30))

        overview = await store.overview(now=NOW)

        assert overview.total_videos == 2
        assert overview.total_views == 3
        assert overview.total_duration_seconds == 150
        assert overview.today_views == 1
        assert overview.week_views == 2
        assert overview.average_views_per_video == 2
        assert overview.most_popular.id == b.id

    @pytest.mark.asyncio
    async def test_overview_of_empty_catalog(self, store):
        overview = await store.overview(now=NOW)

        assert (overview.total_videos, overview.total_views, overview.average_views_per_video) == (0, 0, 0)
        assert overview.most_popular is None

    @pytest.mark.asyncio
    async def test_popular_skips_deleted(self, store):
        a = await _remote_entry(store, "A")
        b = await _remote_entry(store, "B")
        await store.record_view(b.id)
        await store.soft_delete(b.id)

        assert [e.id for e in await store.popular(10)] == [a.id]

    @pytest.mark.asyncio
    async def test_daily_views_fills_gaps(self, store, session_factory):
        entry = await _remote_entry(store)
        await _log_view(session_factory, entry.id, NOW - timedelta(hours=2))
        await _log_view(session_factory, entry.id, NOW - timedelta(hours=3))
        await _log_view(session_factory, entry.id, NOW - timedelta(days=2))
        await _log_view(session_factory, entry.id, NOW - timedelta(days=9))

        days = await store.daily_views(3, now=NOW)

        assert [(d.date, d.views) for d in days] == [
            ("2026-03-08", 1), ("2026-03-09", 0), ("2026-03-10", 2),
        ]

    @pytest.mark.asyncio
    async def test_device_breakdown(self, store, session_factory):
        entry = await _remote_entry(store)
        for device in ("mobile", "mobile", "desktop", None):
            await _log_view(session_factory, entry.id, NOW - timedelta(hours=1), device_type=device)
        await _log_view(session_factory, entry.id, NOW - timedelta(days=40), device_type="tv")

        shares = await store.device_breakdown(30, now=NOW)

        assert [(s.device_type, s.count, s.percentage) for s in shares] == [
            ("mobile", 2, 50.0), ("desktop", 1, 25.0), ("unknown", 1, 25.0),
        ]

    @pytest.mark.asyncio
    async def test_watch_duration_orders_by_completion(self, store, session_factory):
        short = await _remote_entry(store, "S", duration_seconds=10)
        long = await _remote_entry(store, "L", duration_seconds=200)
        no_length = await _remote_entry(store, "N", duration_seconds=0)
        await _log_view(session_factory, short.id, NOW - timedelta(hours=1), duration_watched=9)
        await _log_view(session_factory, long.id, NOW - timedelta(hours=1), duration_watched=40)
        await _log_view(session_factory, long.id, NOW - timedelta(hours=2), duration_watched=60)
        await _log_view(session_factory, no_length.id, NOW - timedelta(hours=1), duration_watched=5)

        stats = await store.watch_duration(30, now=NOW)

        assert [(s.video_id, s.completion_rate) for s in stats] == [
            (short.id, 90.0), (long.id, 25.0), (no_length.id, 0.0),
        ]
        assert stats[1].avg_watched_seconds == 50
        assert stats[1].total_views == 2

    @pytest.mark.asyncio
    async def test_recent_views_newest_first(self, store, session_factory):
        entry = await _remote_entry(store, title="Recent")
        await _log_view(session_factory, entry.id, NOW - timedelta(days=1), device_type="tv")
        await _log_view(session_factory, entry.id, NOW - timedelta(hours=1), device_type="mobile")

        views = await store.recent_views(1)

        assert len(views) == 1
        assert views[0].title == "Recent"
        assert views[0].device_type == "mobile"
