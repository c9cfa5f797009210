"""
VodMirror Reconciliation Service: mirror the remote asset list into the catalog.

One ``synchronize()`` run:
 1. List every remote asset (paginated, capped).
 2. Load every local entry that carries a remote asset id.
 3. Insert remote assets missing locally (metadata from GetVideoInfo).
 4. Hard-delete local entries whose asset vanished remotely (view logs go too).
 5. Refresh title / description / duration / thumbnail of the intersection.

Phases run in that order. Each item is its own store transaction and its
failure is recorded in the report, never raised. A run interrupted midway
leaves committed items in place; re-running converges because the whole
operation is idempotent.

Soft-deleted entries still count as "known" (they are not re-created) but are
skipped by the update phase.

Not internally serialized: overlapping runs must be prevented by the caller.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vodmirror.core.metrics import SYNC_DURATION_SECONDS, SYNC_ITEMS_TOTAL
from vodmirror.models.models import CatalogEntry, CatalogStatus
from vodmirror.services.catalog.catalog_store import CatalogStore
from vodmirror.services.remote.vod_client import RemoteAsset, RemoteCatalogClient

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "untitled"

# Fields reconciliation owns; view_count / created_at are never touched
SYNC_DIFF_FIELDS = ["title", "description", "duration_seconds", "thumbnail_url"]


class SyncOutcome(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"
    INSERT_ERROR = "insert_error"
    UPDATE_ERROR = "update_error"
    DELETE_ERROR = "delete_error"


@dataclass
class SyncItemResult:
    status: SyncOutcome
    remote_asset_id: str
    database_id: Optional[int] = None
    title: Optional[str] = None
    error: Optional[str] = None
    fields_changed: List[str] = field(default_factory=list)


@dataclass
class SyncReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    total_remote_assets: int = 0
    total_local_entries: int = 0
    listing_truncated: bool = False
    deletes_skipped: int = 0
    results: List[SyncItemResult] = field(default_factory=list)

    def _count(self, outcome: SyncOutcome) -> int:
        return sum(1 for r in self.results if r.status == outcome)

    @property
    def inserted(self) -> int:
        return self._count(SyncOutcome.INSERTED)

    @property
    def updated(self) -> int:
        return self._count(SyncOutcome.UPDATED)

    @property
    def deleted(self) -> int:
        return self._count(SyncOutcome.DELETED)

    @property
    def insert_errors(self) -> int:
        return self._count(SyncOutcome.INSERT_ERROR)

    @property
    def update_errors(self) -> int:
        return self._count(SyncOutcome.UPDATE_ERROR)

    @property
    def delete_errors(self) -> int:
        return self._count(SyncOutcome.DELETE_ERROR)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"inserted {self.inserted}, deleted {self.deleted}, updated {self.updated} "
            f"(errors: insert {self.insert_errors}, delete {self.delete_errors}, update {self.update_errors})"
        )


class ReconciliationEngine:
    """Diffs the remote asset list against the local mirror and applies it."""

    def __init__(
        self,
        remote: RemoteCatalogClient,
        store: CatalogStore,
        *,
        default_title: str = DEFAULT_TITLE,
        skip_deletes_on_truncated_listing: bool = True,
    ):
        self.remote = remote
        self.store = store
        self.default_title = default_title
        self.skip_deletes_on_truncated_listing = skip_deletes_on_truncated_listing

    # ── Public API ───────────────────────────────────────────────────

    async def synchronize(self) -> SyncReport:
        """Run one full reconciliation pass.

        Raises the mapped ``CatalogError`` only when the remote listing itself
        fails, before anything is written.
        """
        report = SyncReport(started_at=datetime.now(timezone.utc))
        t0 = time.monotonic()

        listing = await self.remote.list_all_assets()
        if not listing.ok:
            logger.error(f"Sync aborted, remote listing failed: {listing.error.message}")
            raise listing.error.to_catalog_error()

        remote_assets = listing.value.assets
        local_entries = await self.store.list_remote_backed()
        report.total_remote_assets = len(remote_assets)
        report.total_local_entries = len(local_entries)
        report.listing_truncated = listing.value.truncated

        remote_ids = {a.remote_asset_id for a in remote_assets}
        local_ids = {e.remote_asset_id for e in local_entries}

        to_insert = self._dedupe([a for a in remote_assets if a.remote_asset_id not in local_ids])
        to_delete = [e for e in local_entries if e.remote_asset_id not in remote_ids]
        to_update = [
            e for e in local_entries
            if e.remote_asset_id in remote_ids and e.status != CatalogStatus.DELETED
        ]

        logger.info(
            f"Sync plan: {len(to_insert)} insert, {len(to_delete)} delete, {len(to_update)} update "
            f"({len(remote_assets)} remote, {len(local_entries)} local)"
        )

        for asset in to_insert:
            report.results.append(await self._insert(asset))

        if to_delete and listing.value.truncated and self.skip_deletes_on_truncated_listing:
            report.deletes_skipped = len(to_delete)
            logger.warning(
                f"Remote listing was truncated; skipping {len(to_delete)} deletion(s) "
                f"that may belong to unlisted assets"
            )
        else:
            for entry in to_delete:
                report.results.append(await self._delete(entry))

        for entry in to_update:
            report.results.append(await self._update(entry))

        report.finished_at = datetime.now(timezone.utc)
        SYNC_DURATION_SECONDS.observe(time.monotonic() - t0)
        for item in report.results:
            SYNC_ITEMS_TOTAL.labels(outcome=item.status.value).inc()
        logger.info(f"Sync complete: {report.summary()}")
        return report

    # ── Phases ───────────────────────────────────────────────────────

    async def _insert(self, listed: RemoteAsset) -> SyncItemResult:
        asset_id = listed.remote_asset_id
        fields = await self._fresh_fields(listed)
        try:
            entry = await self.store.insert_remote(
                asset_id,
                title=fields["title"],
                description=fields["description"],
                duration_seconds=fields["duration_seconds"],
                thumbnail_url=fields["thumbnail_url"],
                file_size=fields["file_size"],
            )
        except Exception as e:
            logger.exception(f"Insert failed for remote asset {asset_id}")
            return SyncItemResult(SyncOutcome.INSERT_ERROR, asset_id, title=fields["title"], error=str(e))

        return SyncItemResult(SyncOutcome.INSERTED, asset_id, database_id=entry.id, title=entry.title)

    async def _delete(self, entry: CatalogEntry) -> SyncItemResult:
        try:
            await self.store.hard_delete(entry.id)
        except Exception as e:
            logger.exception(f"Delete failed for catalog entry {entry.id} ({entry.remote_asset_id})")
            return SyncItemResult(
                SyncOutcome.DELETE_ERROR, entry.remote_asset_id,
                database_id=entry.id, title=entry.title, error=str(e),
            )
        return SyncItemResult(SyncOutcome.DELETED, entry.remote_asset_id, database_id=entry.id, title=entry.title)

    async def _update(self, entry: CatalogEntry) -> SyncItemResult:
        asset_id = entry.remote_asset_id
        info = await self.remote.get_asset_info(asset_id)
        if not info.ok:
            # Keep the stored metadata rather than clobbering it with defaults
            return SyncItemResult(
                SyncOutcome.UPDATE_ERROR, asset_id,
                database_id=entry.id, title=entry.title, error=info.error.message,
            )

        fresh = self._fields_from(info.value)
        changed = self._diff_entry(entry, fresh)
        try:
            await self.store.apply_remote_update(entry.id, {k: fresh[k] for k in changed})
        except Exception as e:
            logger.exception(f"Update failed for catalog entry {entry.id} ({asset_id})")
            return SyncItemResult(
                SyncOutcome.UPDATE_ERROR, asset_id,
                database_id=entry.id, title=fresh["title"], error=str(e),
            )

        return SyncItemResult(
            SyncOutcome.UPDATED, asset_id,
            database_id=entry.id, title=fresh["title"], fields_changed=changed,
        )

    # ── Helpers ──────────────────────────────────────────────────────

    async def _fresh_fields(self, listed: RemoteAsset) -> Dict[str, Any]:
        info = await self.remote.get_asset_info(listed.remote_asset_id)
        if info.ok:
            return self._fields_from(info.value)
        logger.warning(
            f"GetVideoInfo failed for {listed.remote_asset_id} ({info.error.code}); "
            f"using listing metadata"
        )
        return self._fields_from(listed)

    def _fields_from(self, asset: RemoteAsset) -> Dict[str, Any]:
        return {
            "title": (asset.title or "").strip() or self.default_title,
            "description": asset.description or "",
            "duration_seconds": max(int(asset.duration_seconds or 0), 0),
            "thumbnail_url": asset.cover_url,
            "file_size": asset.size or 0,
        }

    @staticmethod
    def _diff_entry(entry: CatalogEntry, fresh: Dict[str, Any]) -> List[str]:
        changed = []
        for name in SYNC_DIFF_FIELDS:
            new_val = fresh.get(name)
            if new_val is not None and getattr(entry, name, None) != new_val:
                changed.append(name)
        return changed

    @staticmethod
    def _dedupe(assets: List[RemoteAsset]) -> List[RemoteAsset]:
        # Pages can shift while listing; an asset seen twice is inserted once
        seen = set()
        unique = []
        for asset in assets:
            if asset.remote_asset_id not in seen:
                seen.add(asset.remote_asset_id)
                unique.append(asset)
        return unique
