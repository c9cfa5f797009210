"""
VodMirror Celery Worker Tasks

Scheduled catalog sync against the remote VOD provider.

The sync task is routed to its own ``sync`` queue; run that queue with a
single-concurrency worker so scheduled runs never overlap.
"""
from __future__ import annotations

import asyncio
import logging

from celery import Celery

from vodmirror.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# ── Celery App ───────────────────────────────────────────────────────────

celery_app = Celery(
    "vodmirror",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=1800,   # 30 min soft limit
    task_time_limit=3600,        # 1 hour hard limit
    task_default_queue="default",
    task_routes={
        "vodmirror.workers.tasks.sync_catalog_task": {"queue": "sync"},
    },
)

# ── Periodic Tasks ───────────────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    "sync-catalog": {
        "task": "vodmirror.workers.tasks.sync_catalog_task",
        "schedule": float(settings.sync_interval_seconds),
    },
}


# ── Helpers ──────────────────────────────────────────────────────────────

def run_async(coro):
    """Run an async coroutine from sync Celery task."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _sync_once() -> dict:
    # Each task gets its own loop, so pooled connections cannot be shared
    # with the API process or earlier runs.
    from vodmirror.core.database import build_engine, build_session_factory
    from vodmirror.services.catalog.catalog_store import CatalogStore
    from vodmirror.services.remote.vod_client import RemoteCatalogClient
    from vodmirror.services.sync.reconciliation_service import ReconciliationEngine

    engine = build_engine(settings.database_url)
    remote = RemoteCatalogClient.from_settings(settings)
    try:
        reconciler = ReconciliationEngine(
            remote,
            CatalogStore(build_session_factory(engine)),
            default_title=settings.sync_default_title,
            skip_deletes_on_truncated_listing=settings.sync_skip_deletes_on_truncated_listing,
        )
        report = await reconciler.synchronize()
    finally:
        await engine.dispose()

    return {
        "inserted": report.inserted,
        "updated": report.updated,
        "deleted": report.deleted,
        "insert_errors": report.insert_errors,
        "update_errors": report.update_errors,
        "delete_errors": report.delete_errors,
        "deletes_skipped": report.deletes_skipped,
        "listing_truncated": report.listing_truncated,
        "duration_seconds": report.duration_seconds,
    }


# ── Tasks ────────────────────────────────────────────────────────────────

@celery_app.task(name="vodmirror.workers.tasks.sync_catalog_task")
def sync_catalog_task():
    """Run one catalog reconciliation pass."""
    try:
        logger.info("Starting scheduled catalog sync")
        summary = run_async(_sync_once())
        logger.info(f"Scheduled catalog sync complete: {summary}")
        return summary
    except Exception as e:
        logger.error(f"Scheduled catalog sync failed: {e}")
        return {"error": str(e)}

