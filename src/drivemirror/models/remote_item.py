"""Data model for remote drive items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class RemoteItem:
    """
    One item of the remote drive as reported by a DriveGateway.

    Notes:
        - `folder_path` is the path of the containing folder and always ends
          with "/" (e.g. "Documents/Invoices/").
        - `path` is `folder_path + name`, plus a trailing "/" for folders.
        - Both are computed while walking from the configured root and are
          empty for items fetched individually (`DriveGateway.get`).
    """

    id: str
    name: str
    mime_type: str
    is_folder: bool

    parent_id: Optional[str] = None
    size_bytes: int = 0
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    path: str = ""
    folder_path: str = ""

    share_link: Optional[str] = None
    download_link: Optional[str] = None
    thumbnail_link: Optional[str] = None

    def located(self, folder_path: str) -> "RemoteItem":
        """Annotate this item with its containing folder path and return it."""
        self.folder_path = folder_path
        self.path = folder_path + self.name + ("/" if self.is_folder else "")
        return self
