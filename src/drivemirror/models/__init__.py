"""Public model exports for drivemirror."""

from __future__ import annotations

from .remote_item import RemoteItem
from .results import (
    ArchiveOmission,
    ArchiveResult,
    ChannelLease,
    SyncResult,
    SyncStatus,
)

__all__ = [
    "RemoteItem",
    "SyncResult",
    "SyncStatus",
    "ChannelLease",
    "ArchiveOmission",
    "ArchiveResult",
]
