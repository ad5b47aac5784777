"""SQLAlchemy model for the document mirror table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UtcDateTime(TypeDecorator):
    """
    Store datetimes as naive UTC and hand them back tz-aware.

    SQLite drops tzinfo, which would make mirror timestamps incomparable with
    the tz-aware values coming from providers.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime is not allowed; timezone-aware required")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class DocumentRecord(Base):
    """One mirrored remote item (file or folder)."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    folder_path: Mapped[str] = mapped_column(Text, nullable=False)
    remote_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_folder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    share_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    download_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_documents_folder_name", "folder_path", "name"),
    )

    @property
    def path(self) -> str:
        return self.folder_path + self.name + ("/" if self.is_folder else "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "folder" if self.is_folder else "file",
            "path": self.path,
            "folder": self.folder_path,
            "remote_id": self.remote_id,
            "size": self.size_bytes,
            "mimetype": self.mime_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.modified_at.isoformat() if self.modified_at else None,
            "share_link": self.share_link,
            "download_link": self.download_link,
            "thumbnail_link": self.thumbnail_link,
        }
