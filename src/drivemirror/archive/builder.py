"""ArchiveBuilder: bundles remote files or folders into a single zip archive."""

from __future__ import annotations

import io
import logging
import shutil
import tempfile
import zipfile
from typing import BinaryIO, Iterable, Optional

from drivemirror.errors import ArchiveItemError, ProviderError
from drivemirror.gateway.base import DriveGateway
from drivemirror.models import ArchiveOmission, ArchiveResult, RemoteItem

logger = logging.getLogger(__name__)

REPORT_ENTRY = "MISSING_FILES.txt"
DEFAULT_ARCHIVE_NAME = "files.zip"
DEFAULT_SPOOL_MAX_BYTES = 8 * 1024 * 1024


def archive_filename(name: Optional[str], default: str = DEFAULT_ARCHIVE_NAME) -> str:
    """Return a safe archive file name ending in .zip."""
    base = (name or "").strip().replace("/", "_").replace("\\", "_").replace('"', "")
    if not base:
        base = default
    if not base.lower().endswith(".zip"):
        base += ".zip"
    return base


class _EntryNamer:
    """Hands out unique entry names: a.txt, a (1).txt, a (2).txt, ..."""

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def claim(self, wanted: str) -> str:
        directory, _, filename = wanted.rpartition("/")
        prefix = f"{directory}/" if directory else ""
        stem, dot, ext = filename.rpartition(".")
        if not stem:
            # no extension, or a dotfile like ".env"
            stem, dot, ext = filename, "", ""

        candidate = wanted
        counter = 1
        while candidate in self._taken:
            candidate = f"{prefix}{stem} ({counter}){dot}{ext}"
            counter += 1
        self._taken.add(candidate)
        return candidate


class ArchiveBuilder:
    """
    Builds zip archives from remote content.

    Failure policy (skip-and-report): a file whose metadata or content cannot
    be fetched is left out, recorded in ArchiveResult.omitted and listed in a
    MISSING_FILES.txt entry; the rest of the archive is still produced.

    Each file is spooled (in memory up to spool_max_bytes, on disk beyond)
    and only copied into the zip once its download completed, so failed files
    never leave partial entries and only one file is buffered at a time.
    """

    def __init__(
        self,
        gateway: DriveGateway,
        *,
        spool_max_bytes: int = DEFAULT_SPOOL_MAX_BYTES,
    ) -> None:
        self._gateway = gateway
        self._spool_max_bytes = spool_max_bytes

    def build_from_ids(
        self,
        ids: Iterable[str],
        archive_name: Optional[str] = None,
    ) -> ArchiveResult:
        """Archive the given files side by side at the archive root."""
        unique_ids = list(dict.fromkeys(i for i in ids if i))
        filename = archive_filename(archive_name)
        logger.info("Building archive %s from %d files", filename, len(unique_ids))

        namer = _EntryNamer()
        result = ArchiveResult(filename=filename, data=b"")
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for remote_id in unique_ids:
                try:
                    item = self._gateway.get(remote_id)
                except ProviderError as exc:
                    self._omit(result, ArchiveItemError(
                        "File metadata unavailable", remote_id=remote_id, cause=exc,
                    ))
                    continue
                if item.is_folder:
                    self._omit(result, ArchiveItemError(
                        "Folders cannot be added by id", remote_id=remote_id, name=item.name,
                    ))
                    continue
                self._add_file(zf, result, namer, item, _safe_name(item.name))
            self._write_report(zf, result, namer)

        result.data = buffer.getvalue()
        return result

    def build_from_folder(
        self,
        folder_id: str,
        folder_name: Optional[str] = None,
    ) -> ArchiveResult:
        """
        Archive a folder recursively, keeping its hierarchy.

        Raises:
            ProviderError: the folder itself could not be looked up or listed.
        """
        if folder_name is None:
            folder_name = self._gateway.get(folder_id).name
        filename = archive_filename(folder_name, default="folder.zip")
        logger.info("Building archive %s from folder %s", filename, folder_id)

        # List first, so a listing failure aborts before anything is downloaded.
        items = list(self._gateway.walk(folder_id, base_path=""))
        has_children = {item.parent_id for item in items if item.parent_id}

        namer = _EntryNamer()
        folder_entries: dict[str, str] = {"": ""}
        result = ArchiveResult(filename=filename, data=b"")
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for item in items:
                parent_entry = folder_entries.get(item.folder_path, item.folder_path)
                wanted = parent_entry + _safe_name(item.name)
                if item.is_folder:
                    entry = namer.claim(wanted)
                    folder_entries[item.path] = entry + "/"
                    if item.id not in has_children:
                        zf.writestr(entry + "/", b"")
                        result.entries.append(entry + "/")
                    continue
                self._add_file(zf, result, namer, item, wanted)
            self._write_report(zf, result, namer)

        result.data = buffer.getvalue()
        return result

    # ----------------------------
    # Internals
    # ----------------------------
    def _add_file(
        self,
        zf: zipfile.ZipFile,
        result: ArchiveResult,
        namer: _EntryNamer,
        item: RemoteItem,
        wanted: str,
    ) -> None:
        with tempfile.SpooledTemporaryFile(max_size=self._spool_max_bytes) as spool:
            try:
                self._fetch_into(item.id, spool)
            except ProviderError as exc:
                self._omit(result, ArchiveItemError(
                    f"Download failed ({exc.kind})", remote_id=item.id, name=item.name, cause=exc,
                ))
                return
            spool.seek(0)
            entry = namer.claim(wanted)
            info = zipfile.ZipInfo(entry, date_time=_zip_timestamp(item))
            info.compress_type = zipfile.ZIP_DEFLATED
            with zf.open(info, "w") as dest:
                shutil.copyfileobj(spool, dest)
        result.entries.append(entry)

    def _fetch_into(self, remote_id: str, spool: BinaryIO) -> None:
        for chunk in self._gateway.download(remote_id):
            spool.write(chunk)

    def _omit(self, result: ArchiveResult, error: ArchiveItemError) -> None:
        logger.warning("Leaving %s out of %s: %s", error.remote_id, result.filename, error)
        result.omitted.append(
            ArchiveOmission(remote_id=error.remote_id, name=error.name, reason=str(error))
        )

    def _write_report(self, zf: zipfile.ZipFile, result: ArchiveResult, namer: _EntryNamer) -> None:
        if not result.omitted:
            return
        lines = ["The following files could not be included:", ""]
        for omission in result.omitted:
            label = omission.name or omission.remote_id
            lines.append(f"- {label} [{omission.remote_id}]: {omission.reason}")
        # A requested file may already be called MISSING_FILES.txt.
        zf.writestr(namer.claim(REPORT_ENTRY), "\n".join(lines) + "\n")


def _safe_name(name: str) -> str:
    cleaned = name.replace("/", "_").replace("\\", "_").strip()
    if cleaned in ("", ".", ".."):
        return "unnamed"
    return cleaned


def _zip_timestamp(item: RemoteItem) -> tuple[int, int, int, int, int, int]:
    stamp = item.modified_at or item.created_at
    if stamp is None or stamp.year < 1980:
        return (1980, 1, 1, 0, 0, 0)
    return (stamp.year, stamp.month, stamp.day, stamp.hour, stamp.minute, stamp.second)
