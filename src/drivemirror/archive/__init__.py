"""Zip archive bundling of remote content."""

from __future__ import annotations

from .builder import REPORT_ENTRY, ArchiveBuilder, archive_filename

__all__ = ["ArchiveBuilder", "archive_filename", "REPORT_ENTRY"]
