"""
Celery wiring for the scheduled sync.
"""
from vodmirror.core.config import get_settings
from vodmirror.workers.tasks import celery_app, run_async, sync_catalog_task


def test_sync_task_has_own_queue():
    routes = celery_app.conf.task_routes
    assert routes["vodmirror.workers.tasks.sync_catalog_task"] == {"queue": "sync"}


def test_sync_is_scheduled_at_configured_interval():
    entry = celery_app.conf.beat_schedule["sync-catalog"]
    assert entry["task"] == sync_catalog_task.name
    assert entry["schedule"] == float(get_settings().sync_interval_seconds)


def test_run_async():
    async def answer():
        return 42

    assert run_async(answer()) == 42


def test_only_the_sync_is_scheduled():
    assert set(celery_app.conf.beat_schedule) == {"sync-catalog"}
