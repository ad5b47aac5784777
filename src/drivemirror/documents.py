"""Client-facing document operations: remote call first, then the mirror row."""

from __future__ import annotations

import logging
from typing import Optional

from drivemirror.errors import InvalidArgumentError, NotFoundError, ProviderError
from drivemirror.gateway.base import DriveGateway, UploadData
from drivemirror.store import DocumentRecord, DocumentStore, record_from_item
from drivemirror.util.paths import normalize_folder_path, split_item_path

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2


class DocumentService:
    """
    Browse and mutate documents for API clients.

    Reads come from the mirror only. Mutations call the DriveGateway and then
    write their own mirror row; they are not serialized against a running
    reconciliation pass, so the last writer wins on a shared row.
    """

    def __init__(
        self,
        gateway: DriveGateway,
        store: DocumentStore,
        *,
        share_uploads: bool = True,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._share_uploads = share_uploads

    @property
    def root_path(self) -> str:
        return self._gateway.root_path

    # ----------------------------
    # Reads
    # ----------------------------
    def list_folder(self, folder_path: Optional[str] = None) -> list[DocumentRecord]:
        return self._store.list_folder(normalize_folder_path(folder_path, self.root_path))

    def search(self, term: str, limit: int = 50) -> list[DocumentRecord]:
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []
        return self._store.search(term, limit=limit)

    def get(self, item_path: str) -> DocumentRecord:
        """
        Look up the mirror row for an item path.

        Raises:
            NotFoundError: no mirrored item at item_path.
        """
        try:
            folder_path, name = split_item_path(item_path)
        except ValueError as exc:
            raise InvalidArgumentError(str(exc), cause=exc) from exc
        folder_path = normalize_folder_path(folder_path, self.root_path)
        record = self._store.find_one(folder_path=folder_path, name=name)
        if record is None:
            raise NotFoundError("Item not found", details={"path": item_path})
        return record

    def download_url(self, item_path: str) -> str:
        record = self.get(item_path)
        if record.is_folder:
            raise InvalidArgumentError("Folders cannot be downloaded", details={"path": item_path})
        return self._gateway.direct_download_url(record.remote_id)

    # ----------------------------
    # Mutations
    # ----------------------------
    def create_folder(self, parent_path: Optional[str], name: str) -> DocumentRecord:
        _check_name(name)
        item = self._gateway.create_folder(
            normalize_folder_path(parent_path, self.root_path), name
        )
        return self._store.upsert(record_from_item(item))

    def upload(
        self,
        folder_path: Optional[str],
        file_name: str,
        data: UploadData,
        mime_type: str,
    ) -> DocumentRecord:
        _check_name(file_name)
        item = self._gateway.upload(
            normalize_folder_path(folder_path, self.root_path),
            file_name,
            data,
            mime_type,
        )
        if not item.size_bytes and isinstance(data, (bytes, bytearray)):
            item.size_bytes = len(data)
        if self._share_uploads:
            try:
                item.share_link = self._gateway.share_link(item.id)
            except ProviderError as exc:
                logger.warning("Could not share uploaded file %s: %s", item.id, exc)
        return self._store.upsert(record_from_item(item))

    def delete(self, item_path: str) -> DocumentRecord:
        record = self.get(item_path)
        self._gateway.delete(record.remote_id)
        self._store.delete(record.remote_id)
        # Rows below a deleted folder disappear with the next reconciliation pass.
        return record

    def rename(self, item_path: str, new_name: str) -> DocumentRecord:
        _check_name(new_name)
        record = self.get(item_path)
        item = self._gateway.rename(record.remote_id, new_name)

        fields = {"name": new_name}
        if item.modified_at is not None:
            fields["modified_at"] = item.modified_at
        self._store.update(record.remote_id, **fields)

        if record.is_folder:
            old_prefix = record.path
            new_prefix = record.folder_path + new_name + "/"
            self._move_descendants(old_prefix, new_prefix)

        updated = self._store.get_by_remote_id(record.remote_id)
        return updated if updated is not None else record

    # ----------------------------
    # Internals
    # ----------------------------
    def _move_descendants(self, old_prefix: str, new_prefix: str) -> None:
        """Rewrite folder_path of everything below a renamed folder."""
        pending = [(old_prefix, new_prefix)]
        while pending:
            old_path, new_path = pending.pop()
            for child in self._store.find(folder_path=old_path):
                self._store.update(child.remote_id, folder_path=new_path)
                if child.is_folder:
                    pending.append((old_path + child.name + "/", new_path + child.name + "/"))


def _check_name(name: str) -> None:
    if not name or not name.strip() or "/" in name:
        raise InvalidArgumentError("Name must be non-empty and must not contain '/'")
