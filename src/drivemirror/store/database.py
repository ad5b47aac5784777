"""Relational mirror of the remote drive, using SQLAlchemy.

This module provides:
- Equality-filtered lookups over mirrored document rows
- Insert/upsert/update/delete keyed by remote id
- Folder listing and name search for the browsing API

No transactions span more than one row: every call commits on its own.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from drivemirror.models import RemoteItem

from .models import Base, DocumentRecord

logger = logging.getLogger(__name__)

#: Columns the reconciler refreshes when the remote copy is newer.
MUTABLE_FIELDS: tuple[str, ...] = (
    "name",
    "folder_path",
    "parent_id",
    "size_bytes",
    "mime_type",
    "modified_at",
    "share_link",
    "download_link",
    "thumbnail_link",
)

_COLUMNS = frozenset(c.name for c in DocumentRecord.__table__.columns)


def record_from_item(item: RemoteItem) -> DocumentRecord:
    """Build a new (unsaved) mirror row from a walked RemoteItem."""
    return DocumentRecord(
        name=item.name,
        folder_path=item.folder_path,
        remote_id=item.id,
        parent_id=item.parent_id,
        is_folder=item.is_folder,
        size_bytes=item.size_bytes or 0,
        mime_type=item.mime_type,
        created_at=item.created_at,
        modified_at=item.modified_at,
        share_link=item.share_link,
        download_link=item.download_link,
        thumbnail_link=item.thumbnail_link,
    )


def mutable_fields_from_item(item: RemoteItem) -> dict[str, Any]:
    record = record_from_item(item)
    return {name: getattr(record, name) for name in MUTABLE_FIELDS}


class DocumentStore:
    """SQLAlchemy-backed table of DocumentRecord rows."""

    def __init__(self, url: str = "sqlite:///drivemirror.db", *, engine: Optional[Engine] = None) -> None:
        """Initialize the store.

        Args:
            url: SQLAlchemy database URL (ignored when engine is given).
            engine: Pre-built engine, mainly for tests.
        """
        if engine is None:
            kwargs: dict[str, Any] = {"echo": False}
            if url.startswith("sqlite"):
                # The reconciler runs on the scheduler thread.
                kwargs["connect_args"] = {"check_same_thread": False}
                if url in ("sqlite://", "sqlite:///:memory:"):
                    kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
        self._engine = engine
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)

        Base.metadata.create_all(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    def _session(self) -> Session:
        return self._sessions()

    # === Queries ===

    def select_all(self) -> list[DocumentRecord]:
        with self._session() as session:
            return list(session.scalars(select(DocumentRecord)))

    def find(self, **filters: Any) -> list[DocumentRecord]:
        """Return rows matching every equality filter (column=value)."""
        stmt = select(DocumentRecord)
        for column, value in filters.items():
            stmt = stmt.where(self._column(column) == value)
        with self._session() as session:
            return list(session.scalars(stmt))

    def find_one(self, **filters: Any) -> Optional[DocumentRecord]:
        rows = self.find(**filters)
        return rows[0] if rows else None

    def get_by_remote_id(self, remote_id: str) -> Optional[DocumentRecord]:
        return self.find_one(remote_id=remote_id)

    def list_folder(self, folder_path: str) -> list[DocumentRecord]:
        """Direct children of folder_path, folders first, then by name."""
        stmt = (
            select(DocumentRecord)
            .where(DocumentRecord.folder_path == folder_path)
            .order_by(DocumentRecord.is_folder.desc(), DocumentRecord.name)
        )
        with self._session() as session:
            return list(session.scalars(stmt))

    def search(self, term: str, limit: int = 50) -> list[DocumentRecord]:
        """Case-insensitive substring match on name, folders first."""
        pattern = f"%{_escape_like(term)}%"
        stmt = (
            select(DocumentRecord)
            .where(DocumentRecord.name.ilike(pattern, escape="\\"))
            .order_by(DocumentRecord.is_folder.desc(), DocumentRecord.name)
            .limit(limit)
        )
        with self._session() as session:
            return list(session.scalars(stmt))

    # === Mutations ===

    def insert(self, record: DocumentRecord) -> DocumentRecord:
        """Insert a row.

        Raises:
            IntegrityError: if a row with the same remote_id already exists.
        """
        with self._session() as session:
            session.add(record)
            session.commit()
            return record

    def upsert(self, record: DocumentRecord) -> DocumentRecord:
        """Insert a row, or overwrite the mutable columns of the row already
        holding record.remote_id (last writer wins)."""
        try:
            return self.insert(record)
        except IntegrityError:
            fields = {name: getattr(record, name) for name in MUTABLE_FIELDS}
            if not self.update(record.remote_id, **fields):
                raise
            logger.debug("Row for %s already mirrored, overwrote it", record.remote_id)
        existing = self.get_by_remote_id(record.remote_id)
        return existing if existing is not None else record

    def update(self, remote_id: str, **fields: Any) -> bool:
        """Update columns of the row with remote_id. Returns False if no row matched."""
        if not fields:
            return False
        for column in fields:
            self._column(column)
        with self._session() as session:
            result = session.execute(
                update(DocumentRecord)
                .where(DocumentRecord.remote_id == remote_id)
                .values(**fields)
            )
            session.commit()
            return result.rowcount > 0

    def delete(self, remote_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(DocumentRecord).where(DocumentRecord.remote_id == remote_id)
            )
            session.commit()
            return result.rowcount > 0

    def count(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(DocumentRecord)) or 0

    @staticmethod
    def _column(name: str) -> Any:
        if name not in _COLUMNS:
            raise ValueError(f"Unknown document column: {name}")
        return getattr(DocumentRecord, name)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
