"""
VodMirror API: catalog sync route.
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends

from vodmirror.api.deps import get_reconciliation_engine, get_sync_lock
from vodmirror.core.errors import SyncInProgress
from vodmirror.schemas.schemas import SyncReportSchema
from vodmirror.services.sync.reconciliation_service import ReconciliationEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("", response_model=SyncReportSchema)
async def trigger_sync(
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    lock: asyncio.Lock = Depends(get_sync_lock),
):
    """Reconcile the local catalog with the remote provider.

    Runs in this process are serialized; a second request while one is in
    flight is rejected with 409 instead of queueing behind it.
    """
    if lock.locked():
        raise SyncInProgress("a catalog sync is already running")

    async with lock:
        logger.info("Catalog sync requested")
        report = await engine.synchronize()

    return SyncReportSchema.model_validate(report)
