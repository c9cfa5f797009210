"""
VodMirror ORM Models.

``catalog_entries`` mirrors remote VOD assets (keyed by ``remote_asset_id``)
alongside directly added static assets (``static_url``). ``view_logs`` is the
append-only playback event log.
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger, DateTime, Enum, ForeignKey, Index,
    Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vodmirror.core.database import Base


# ═══════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════

class CatalogStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PROCESSING = "processing"
    DELETED = "deleted"


# ═══════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════

class CatalogEntry(Base):
    __tablename__ = "catalog_entries"
    __table_args__ = (
        Index("ix_catalog_entries_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    remote_asset_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    static_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    # Last signed URL handed out for a remote entry; display fallback only
    cached_play_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0)
    resolution: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    like_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    status: Mapped[CatalogStatus] = mapped_column(
        Enum(CatalogStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        default=CatalogStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    view_logs: Mapped[List["ViewLog"]] = relationship(
        "ViewLog", back_populates="video", passive_deletes=True, lazy="noload",
    )

    @property
    def is_remote(self) -> bool:
        return bool(self.remote_asset_id)


class ViewLog(Base):
    """One row per playback event. Never mutated."""
    __tablename__ = "view_logs"
    __table_args__ = (
        Index("ix_view_logs_video_id", "video_id"),
        Index("ix_view_logs_view_time", "view_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[int] = mapped_column(ForeignKey("catalog_entries.id", ondelete="CASCADE"))
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    viewed_at: Mapped[datetime] = mapped_column("view_time", DateTime(timezone=True), server_default=func.now())
    duration_watched: Mapped[int] = mapped_column(Integer, default=0)
    device_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    video: Mapped["CatalogEntry"] = relationship("CatalogEntry", back_populates="view_logs")


Index("ix_catalog_entries_view_count", CatalogEntry.view_count.desc())
Index("ix_catalog_entries_created_at", CatalogEntry.created_at.desc())
