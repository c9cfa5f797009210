"""
In-memory stand-ins for the remote VOD client.
"""
from typing import Dict, List, Optional, Set

from vodmirror.services.remote.vod_client import (
    AssetListing,
    PlayUrl,
    RemoteAsset,
    RemoteError,
    RemoteErrorKind,
    RemoteResult,
)


def make_asset(asset_id: str, title: Optional[str] = None, **kwargs) -> RemoteAsset:
    return RemoteAsset(
        remote_asset_id=asset_id,
        title=title if title is not None else f"Video {asset_id}",
        description=kwargs.pop("description", f"about {asset_id}"),
        duration_seconds=kwargs.pop("duration_seconds", 60),
        cover_url=kwargs.pop("cover_url", f"https://img.example.com/{asset_id}.jpg"),
        **kwargs,
    )


class FakeRemoteClient:
    """Serves a fixed asset set; individual calls can be made to fail."""

    endpoint = "https://vod.fake.example.com"

    def __init__(self, assets: Optional[List[RemoteAsset]] = None):
        self.assets: Dict[str, RemoteAsset] = {a.remote_asset_id: a for a in assets or []}
        self.listing_error: Optional[RemoteError] = None
        self.listing_truncated = False
        # Listing entries that GetVideoInfo disagrees with, keyed by asset id
        self.info_overrides: Dict[str, RemoteAsset] = {}
        self.failing_info: Set[str] = set()
        self.play_error: Optional[RemoteError] = None
        self.calls: List[tuple] = []

    def set_assets(self, assets: List[RemoteAsset]) -> None:
        self.assets = {a.remote_asset_id: a for a in assets}

    async def list_all_assets(self) -> RemoteResult[AssetListing]:
        self.calls.append(("list_all_assets",))
        if self.listing_error:
            return RemoteResult.failure(self.listing_error)
        assets = list(self.assets.values())
        return RemoteResult.success(AssetListing(
            assets=assets,
            reported_total=len(assets),
            pages_fetched=1,
            truncated=self.listing_truncated,
        ))

    async def get_asset_info(self, remote_asset_id: str) -> RemoteResult[RemoteAsset]:
        self.calls.append(("get_asset_info", remote_asset_id))
        if remote_asset_id in self.failing_info:
            return RemoteResult.failure(RemoteError(RemoteErrorKind.NETWORK, "connection reset", "NETWORK_ERROR"))
        asset = self.info_overrides.get(remote_asset_id) or self.assets.get(remote_asset_id)
        if asset is None:
            return RemoteResult.failure(RemoteError(RemoteErrorKind.NOT_FOUND, "gone", "InvalidVideo.NotFound"))
        return RemoteResult.success(asset)

    async def get_play_url(self, remote_asset_id: str) -> RemoteResult[PlayUrl]:
        self.calls.append(("get_play_url", remote_asset_id))
        if self.play_error:
            return RemoteResult.failure(self.play_error)
        n = sum(1 for c in self.calls if c[0] == "get_play_url")
        return RemoteResult.success(PlayUrl(
            url=f"https://cdn.example.com/{remote_asset_id}.mp4?auth_key=sig{n}",
            definition="FHD",
            format="mp4",
            expires_in_seconds=3600,
        ))

    async def test_connection(self) -> RemoteResult[int]:
        self.calls.append(("test_connection",))
        if self.listing_error:
            return RemoteResult.failure(self.listing_error)
        return RemoteResult.success(len(self.assets))

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)
