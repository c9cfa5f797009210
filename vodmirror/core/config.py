"""
VodMirror Core Settings.

Catalog mirror for a remote VOD provider: reconciliation of the remote asset
list into PostgreSQL plus on-demand resolution of signed playback URLs.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="VODMIRROR_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "VodMirror"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    host: str = "0.0.0.0"
    port: int = 8000

    # ── PostgreSQL ───────────────────────────────────────────────────────
    db_host: str = "postgres"
    db_port: int = 5432
    db_user: str = "vodmirror"
    db_password: str = "vodmirror_secret"
    db_name: str = "vodmirror"
    db_pool_size: int = 10
    # Full SQLAlchemy URL; wins over the parts above (tests use sqlite+aiosqlite)
    database_url_override: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Redis / Celery ───────────────────────────────────────────────────
    celery_broker_url: str = "redis://redis:6379/1"
    celery_result_backend: str = "redis://redis:6379/2"

    # ── Remote VOD provider ──────────────────────────────────────────────
    vod_access_key_id: Optional[str] = None
    vod_access_key_secret: Optional[str] = None
    vod_endpoint: str = "vod.cn-shanghai.aliyuncs.com"
    vod_region_id: str = "cn-shanghai"
    vod_timeout_seconds: float = 60.0
    vod_connect_timeout_seconds: float = 10.0

    # Listing: fixed-size pages, newest first, hard page cap as a circuit breaker
    vod_list_page_size: int = 100
    vod_list_max_pages: int = 10
    vod_list_status: str = "Normal"
    vod_list_sort_by: str = "CreationTime:Desc"

    # Signed play URLs
    vod_play_url_ttl_seconds: int = 3600
    vod_play_formats: str = "mp4"
    vod_play_definition: str = "Auto"

    # ── Playback ─────────────────────────────────────────────────────────
    url_cache_ttl_seconds: int = 30 * 60

    # ── Sync ─────────────────────────────────────────────────────────────
    sync_interval_seconds: int = 3600
    sync_default_title: str = "untitled"
    sync_skip_deletes_on_truncated_listing: bool = True

    # ── Stats ────────────────────────────────────────────────────────────
    stats_window_days: int = 30


@lru_cache()
def get_settings() -> Settings:
    return Settings()
