"""Result models for reconciliation, push channels and archives."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(slots=True)
class SyncResult:
    """Outcome of one reconciliation pass (or of a skipped request)."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    skipped: bool = False

    failed_ids: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @classmethod
    def skipped_result(cls) -> "SyncResult":
        """Result returned when another pass is already running."""
        return cls(skipped=True)

    def as_dict(self) -> dict[str, Any]:
        if self.skipped:
            return {"skipped": True}
        return {
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "errors": self.errors,
        }


@dataclass(slots=True, frozen=True)
class SyncStatus:
    """Snapshot of the Reconciler state exposed to status endpoints."""

    is_syncing: bool
    last_sync_time: Optional[datetime]
    auto_sync_active: bool
    next_sync_time: Optional[datetime] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_syncing": self.is_syncing,
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "auto_sync_active": self.auto_sync_active,
            "next_sync_time": self.next_sync_time.isoformat() if self.next_sync_time else None,
        }


@dataclass(slots=True, frozen=True)
class ChannelLease:
    """
    A time-limited push-notification subscription with the provider.

    Attributes:
        channel_id: Id chosen by us when subscribing; echoed in every notification.
        resource_id: Opaque provider id of the watched resource (needed to stop).
        token: Secret echoed back by the provider, compared on receipt.
        expires_at: Provider-enforced end of the subscription.
        page_token: Change-feed cursor the subscription was opened at.
    """

    channel_id: str
    resource_id: str
    token: str
    expires_at: datetime
    page_token: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(slots=True, frozen=True)
class ArchiveOmission:
    """A file left out of an archive and why."""

    remote_id: str
    name: Optional[str]
    reason: str


@dataclass(slots=True)
class ArchiveResult:
    """A finished zip archive plus the report of what went into it."""

    filename: str
    data: bytes
    entries: list[str] = field(default_factory=list)
    omitted: list[ArchiveOmission] = field(default_factory=list)

    content_type: str = "application/zip"

    @property
    def complete(self) -> bool:
        return not self.omitted
