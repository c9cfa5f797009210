"""
VodMirror API: remote provider diagnostics.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from vodmirror.api.deps import get_remote_client
from vodmirror.schemas.schemas import ErrorDetail, RemoteAssetSchema, VodConnectionSchema
from vodmirror.services.remote.vod_client import RemoteCatalogClient

router = APIRouter(prefix="/vod", tags=["VOD"])


@router.get("/test", response_model=VodConnectionSchema)
async def test_connection(remote: RemoteCatalogClient = Depends(get_remote_client)):
    """Check credentials and reachability; always 200, outcome in the body."""
    result = await remote.test_connection()
    if result.ok:
        return VodConnectionSchema(success=True, endpoint=remote.endpoint, total_count=result.value)

    err = result.error
    return VodConnectionSchema(
        success=False,
        endpoint=remote.endpoint,
        error=ErrorDetail(
            code=err.code,
            message=err.message,
            details={"kind": err.kind.value, "suggestion": err.suggestion},
        ),
    )


@router.get("/info/{asset_id}", response_model=RemoteAssetSchema)
async def get_asset_info(asset_id: str, remote: RemoteCatalogClient = Depends(get_remote_client)):
    result = await remote.get_asset_info(asset_id)
    if not result.ok:
        raise result.error.to_catalog_error()
    return RemoteAssetSchema.model_validate(result.value)
