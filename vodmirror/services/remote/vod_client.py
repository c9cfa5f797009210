"""
VodMirror Remote Catalog Client: capability wrapper over the VOD provider.

Actions used:
  - SearchMedia   list assets, paginated, newest first
  - GetVideoInfo  full metadata for one asset (title, description, duration, cover)
  - GetPlayInfo   signed play URL with a fixed validity window

Calls go through the provider's async SDK, which signs each request.
Every public call returns a ``RemoteResult``; provider, HTTP and network
failures are classified into ``RemoteErrorKind`` and never raised. Nothing is
retried or cached here: retry policy and freshness belong to the caller.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from alibabacloud_tea_openapi import models as open_api_models
from alibabacloud_vod20170321 import models as vod_models
from alibabacloud_vod20170321.client import Client as VodClient

from vodmirror.core.config import Settings, get_settings
from vodmirror.core.errors import (
    CatalogError, NotFound, RemoteAuthFailure, RemoteQuotaExceeded, RemoteUnavailable,
)
from vodmirror.core.metrics import REMOTE_CALLS_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════
# Result / error types
# ═══════════════════════════════════════════════════════════════════════

class RemoteErrorKind(str, enum.Enum):
    AUTH = "auth_error"
    NOT_FOUND = "not_found"
    QUOTA_OR_BILLING = "quota_or_billing"
    NETWORK = "network_error"
    UNKNOWN = "unknown"


@dataclass
class RemoteError:
    kind: RemoteErrorKind
    message: str
    code: str = "UNKNOWN"
    suggestion: str = ""

    def to_catalog_error(self) -> CatalogError:
        """Map onto the service-level taxonomy, keeping the provider code."""
        details = {"remote_code": self.code, "remote_kind": self.kind.value}
        if self.suggestion:
            details["suggestion"] = self.suggestion
        if self.kind == RemoteErrorKind.AUTH:
            return RemoteAuthFailure(self.message, details)
        if self.kind == RemoteErrorKind.NOT_FOUND:
            return NotFound(self.message, details)
        if self.kind == RemoteErrorKind.QUOTA_OR_BILLING:
            return RemoteQuotaExceeded(self.message, details)
        return RemoteUnavailable(self.message, details)


@dataclass
class RemoteResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[RemoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "RemoteResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RemoteError) -> "RemoteResult[T]":
        return cls(error=error)


# ═══════════════════════════════════════════════════════════════════════
# Payload types
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class RemoteAsset:
    remote_asset_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: int = 0
    cover_url: Optional[str] = None
    status: Optional[str] = None
    creation_time: Optional[str] = None
    size: int = 0


@dataclass
class AssetPage:
    assets: List[RemoteAsset]
    total: int
    page_no: int
    page_size: int
    # Items the provider returned, parseable or not
    raw_count: int = 0


@dataclass
class AssetListing:
    assets: List[RemoteAsset] = field(default_factory=list)
    reported_total: int = 0
    pages_fetched: int = 0
    # True when the page cap stopped the listing before the remote total was reached
    truncated: bool = False


@dataclass
class PlayUrl:
    url: str
    definition: Optional[str] = None
    format: Optional[str] = None
    size: int = 0
    duration_seconds: int = 0
    expires_in_seconds: int = 0


def parse_duration_seconds(raw: Any) -> int:
    """Whole seconds from a provider duration ("123.45", 123.4, None); 0 if unusable."""
    if raw is None or raw == "":
        return 0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return int(round(value))


def _as_int(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def _asset_from_payload(payload: Dict[str, Any]) -> Optional[RemoteAsset]:
    # SearchMedia nests the video under "Video"; GetVideoInfo returns it flat
    video = payload.get("Video") or payload
    asset_id = payload.get("MediaId") or video.get("VideoId") or video.get("MediaId")
    if not asset_id:
        return None
    return RemoteAsset(
        remote_asset_id=str(asset_id),
        title=video.get("Title") or None,
        description=video.get("Description") or None,
        duration_seconds=parse_duration_seconds(video.get("Duration")),
        cover_url=video.get("CoverURL") or None,
        status=video.get("Status"),
        creation_time=video.get("CreationTime"),
        size=_as_int(video.get("Size")),
    )


# ═══════════════════════════════════════════════════════════════════════
# Error classification
# ═══════════════════════════════════════════════════════════════════════

_AUTH_CODES = {
    "SignatureDoesNotMatch", "IncompleteSignature", "MissingCredentials",
    "Forbidden.RAM", "Forbidden.AccessKeyDisabled", "InvalidSecurityToken.Expired",
}
_AUTH_PREFIXES = ("InvalidAccessKeyId",)
_QUOTA_PREFIXES = ("Forbidden.Delinquent", "Forbidden.InDebt", "Forbidden.Suspended", "Throttling", "QuotaExceeded")
_NOT_FOUND_CODES = {"InvalidVideo.NotFound", "InvalidVideo.NoneStream", "NoPlayInfo", "NoVideoInfo"}


def classify_error(code: Optional[str], message: str, http_status: Optional[int] = None) -> RemoteError:
    code = code or "UNKNOWN"
    if code in _AUTH_CODES or code.startswith(_AUTH_PREFIXES):
        return RemoteError(
            RemoteErrorKind.AUTH, message, code,
            suggestion="check the configured VOD access key id and secret",
        )
    if code.startswith(_QUOTA_PREFIXES):
        return RemoteError(
            RemoteErrorKind.QUOTA_OR_BILLING, message, code,
            suggestion="provider account is suspended, in arrears or throttled",
        )
    if code in _NOT_FOUND_CODES or (http_status == 404 and code == "UNKNOWN"):
        return RemoteError(
            RemoteErrorKind.NOT_FOUND, message, code,
            suggestion="asset id does not exist, was deleted, or has not finished transcoding",
        )
    return RemoteError(RemoteErrorKind.UNKNOWN, message, code)


# ═══════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════

# Async SDK method per provider action
_SDK_METHODS = {
    "SearchMedia": "search_media_async",
    "GetVideoInfo": "get_video_info_async",
    "GetPlayInfo": "get_play_info_async",
}

SEARCH_MEDIA_FIELDS = "Title,Description,Duration,CoverURL,Status,CreationTime,Size"


def error_from_exception(action: str, exc: Exception) -> RemoteError:
    """Classify an exception raised by the provider SDK.

    Provider rejections carry the provider ``code`` (and the HTTP status in
    ``data``); anything without a code never got a provider answer.
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return RemoteError(
            RemoteErrorKind.NETWORK, f"timed out calling {action}", "TIMEOUT",
            suggestion="check network connectivity to the VOD endpoint",
        )

    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    if not code:
        return RemoteError(
            RemoteErrorKind.NETWORK, f"cannot reach VOD endpoint during {action}: {message}", "NETWORK_ERROR",
            suggestion="check network connectivity and DNS settings",
        )

    data = getattr(exc, "data", None)
    status = getattr(exc, "status_code", None)
    if status is None and isinstance(data, dict):
        status = data.get("statusCode")
    return classify_error(str(code), message, _as_int(status) or None)


class RemoteCatalogClient:
    """VOD provider client built on the provider's async SDK.

    One instance (and one SDK client) is shared by all requests of a process.
    Without a configured key pair no SDK client is built and every call fails
    fast with an ``AUTH`` error instead of touching the network.
    """

    def __init__(
        self,
        access_key_id: Optional[str],
        access_key_secret: Optional[str],
        *,
        endpoint: str = "vod.cn-shanghai.aliyuncs.com",
        region_id: Optional[str] = "cn-shanghai",
        page_size: int = 100,
        max_pages: int = 10,
        list_status: Optional[str] = "Normal",
        list_sort_by: str = "CreationTime:Desc",
        play_url_ttl_seconds: int = 3600,
        play_formats: str = "mp4",
        play_definition: str = "Auto",
        timeout: float = 60.0,
        connect_timeout: float = 10.0,
        sdk_client: Optional[Any] = None,
    ):
        self.access_key_id = (access_key_id or "").strip()
        self.access_key_secret = (access_key_secret or "").strip()
        # The SDK takes a bare host name
        self.endpoint = endpoint.split("://", 1)[-1].rstrip("/")
        self.region_id = region_id
        self.page_size = page_size
        self.max_pages = max_pages
        self.list_status = list_status
        self.list_sort_by = list_sort_by
        self.play_url_ttl_seconds = play_url_ttl_seconds
        self.play_formats = play_formats
        self.play_definition = play_definition

        if sdk_client is None and self.is_configured:
            sdk_client = VodClient(open_api_models.Config(
                access_key_id=self.access_key_id,
                access_key_secret=self.access_key_secret,
                endpoint=self.endpoint,
                region_id=region_id,
                read_timeout=int(timeout * 1000),
                connect_timeout=int(connect_timeout * 1000),
            ))
        self._sdk = sdk_client

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, sdk_client: Optional[Any] = None) -> "RemoteCatalogClient":
        settings = settings or get_settings()
        return cls(
            settings.vod_access_key_id,
            settings.vod_access_key_secret,
            endpoint=settings.vod_endpoint,
            region_id=settings.vod_region_id,
            page_size=settings.vod_list_page_size,
            max_pages=settings.vod_list_max_pages,
            list_status=settings.vod_list_status,
            list_sort_by=settings.vod_list_sort_by,
            play_url_ttl_seconds=settings.vod_play_url_ttl_seconds,
            play_formats=settings.vod_play_formats,
            play_definition=settings.vod_play_definition,
            timeout=settings.vod_timeout_seconds,
            connect_timeout=settings.vod_connect_timeout_seconds,
            sdk_client=sdk_client,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.access_key_id and self.access_key_secret)

    # ── Transport ────────────────────────────────────────────────────────

    async def _call(self, action: str, request: Any) -> RemoteResult[Dict[str, Any]]:
        if not self.is_configured or self._sdk is None:
            REMOTE_CALLS_TOTAL.labels(action=action, outcome=RemoteErrorKind.AUTH.value).inc()
            return RemoteResult.failure(RemoteError(
                RemoteErrorKind.AUTH, "VOD access key is not configured", "MissingCredentials",
                suggestion="set VODMIRROR_VOD_ACCESS_KEY_ID and VODMIRROR_VOD_ACCESS_KEY_SECRET",
            ))

        method = getattr(self._sdk, _SDK_METHODS[action])
        try:
            response = await method(request)
        except Exception as e:
            # SDK boundary: provider and transport failures become RemoteErrors
            return self._record(action, RemoteResult.failure(error_from_exception(action, e)))

        body = getattr(response, "body", None)
        payload = body.to_map() if body is not None else {}
        return self._record(action, RemoteResult.success(payload or {}))

    @staticmethod
    def _record(action: str, result: RemoteResult) -> RemoteResult:
        outcome = "ok" if result.ok else result.error.kind.value
        REMOTE_CALLS_TOTAL.labels(action=action, outcome=outcome).inc()
        if not result.ok:
            logger.warning(f"VOD {action} failed [{result.error.code}]: {result.error.message}")
        return result

    # ── Listing ──────────────────────────────────────────────────────────

    async def list_assets_page(self, page_no: int, page_size: Optional[int] = None) -> RemoteResult[AssetPage]:
        page_size = page_size or self.page_size
        result = await self._call("SearchMedia", vod_models.SearchMediaRequest(
            search_type="video",
            fields=SEARCH_MEDIA_FIELDS,
            match=f"Status in ('{self.list_status}')" if self.list_status else None,
            page_no=page_no,
            page_size=page_size,
            sort_by=self.list_sort_by,
        ))
        if not result.ok:
            return RemoteResult.failure(result.error)

        payload = result.value
        media_list = payload.get("MediaList") or []
        assets = []
        for media in media_list:
            asset = _asset_from_payload(media)
            if asset is None:
                logger.warning(f"Skipping SearchMedia item without an asset id on page {page_no}")
                continue
            assets.append(asset)
        return RemoteResult.success(AssetPage(
            assets=assets,
            total=_as_int(payload.get("Total")),
            page_no=page_no,
            page_size=page_size,
            raw_count=len(media_list),
        ))

    async def list_all_assets(self) -> RemoteResult[AssetListing]:
        """All remote assets, newest first.

        Stops at the first short page or once the provider has returned as many
        items as its reported total. Both checks count the items the provider
        sent, including ones that could not be parsed. After ``max_pages``
        pages the partial listing is returned with ``truncated=True``. A failed
        page fails the whole listing.
        """
        listing = AssetListing()
        received = 0
        page_no = 1
        while True:
            page = await self.list_assets_page(page_no)
            if not page.ok:
                return RemoteResult.failure(page.error)

            listing.assets.extend(page.value.assets)
            listing.reported_total = page.value.total
            listing.pages_fetched = page_no
            received += page.value.raw_count

            has_more = page.value.raw_count >= self.page_size and received < listing.reported_total
            if not has_more:
                break
            if page_no >= self.max_pages:
                listing.truncated = True
                logger.warning(
                    f"VOD listing stopped at page cap ({self.max_pages} pages): "
                    f"{received} of {listing.reported_total} reported assets fetched"
                )
                break
            page_no += 1

        logger.info(f"Listed {len(listing.assets)} VOD assets in {listing.pages_fetched} page(s)")
        return RemoteResult.success(listing)

    # ── Single asset ─────────────────────────────────────────────────────

    async def get_asset_info(self, remote_asset_id: str) -> RemoteResult[RemoteAsset]:
        result = await self._call("GetVideoInfo", vod_models.GetVideoInfoRequest(video_id=remote_asset_id))
        if not result.ok:
            return RemoteResult.failure(result.error)

        video = result.value.get("Video")
        asset = _asset_from_payload(video) if video else None
        if asset is None:
            return RemoteResult.failure(classify_error(
                "NoVideoInfo", f"no video info returned for {remote_asset_id}",
            ))
        return RemoteResult.success(asset)

    async def get_play_url(self, remote_asset_id: str) -> RemoteResult[PlayUrl]:
        """Fresh signed play URL, valid for ``play_url_ttl_seconds``."""
        result = await self._call("GetPlayInfo", vod_models.GetPlayInfoRequest(
            video_id=remote_asset_id,
            formats=self.play_formats,
            auth_timeout=self.play_url_ttl_seconds,
            definition=self.play_definition,
        ))
        if not result.ok:
            return RemoteResult.failure(result.error)

        play_infos = (result.value.get("PlayInfoList") or {}).get("PlayInfo") or []
        if not play_infos or not play_infos[0].get("PlayURL"):
            return RemoteResult.failure(classify_error(
                "NoPlayInfo",
                f"no play info for {remote_asset_id}; asset missing or transcoding not finished",
            ))

        info = play_infos[0]
        return RemoteResult.success(PlayUrl(
            url=info["PlayURL"],
            definition=info.get("Definition"),
            format=info.get("Format"),
            size=_as_int(info.get("Size")),
            duration_seconds=parse_duration_seconds(info.get("Duration")),
            expires_in_seconds=self.play_url_ttl_seconds,
        ))

    # ── Diagnostics ──────────────────────────────────────────────────────

    async def test_connection(self) -> RemoteResult[int]:
        """Cheapest authenticated call; returns the remote asset total."""
        page = await self.list_assets_page(1, page_size=1)
        if not page.ok:
            return RemoteResult.failure(page.error)
        return RemoteResult.success(page.value.total)
