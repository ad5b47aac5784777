"""drivemirror: keep a relational mirror of a cloud drive folder in sync."""

from __future__ import annotations

from .archive import ArchiveBuilder
from .config import MirrorConfig
from .documents import DocumentService
from .errors import (
    ApiError,
    ArchiveItemError,
    AuthExpiredError,
    ConflictError,
    DriveMirrorError,
    FullSyncAborted,
    InvalidArgumentError,
    InvalidStateError,
    ItemSyncError,
    NetworkError,
    NotFoundError,
    NotSupportedError,
    PermissionError,
    ProviderError,
    ProviderTimeout,
    QuotaExceededError,
    RateLimitError,
    WebhookValidationError,
)
from .gateway import DriveGateway, GoogleDriveGateway, OneDriveGateway, RetryPolicy
from .models import (
    ArchiveOmission,
    ArchiveResult,
    ChannelLease,
    RemoteItem,
    SyncResult,
    SyncStatus,
)
from .notify import ChangeNotifier
from .store import DocumentRecord, DocumentStore
from .sync import Reconciler

__all__ = [
    # components
    "DriveGateway",
    "GoogleDriveGateway",
    "OneDriveGateway",
    "RetryPolicy",
    "DocumentStore",
    "Reconciler",
    "ChangeNotifier",
    "ArchiveBuilder",
    "DocumentService",
    "MirrorConfig",
    # models
    "RemoteItem",
    "DocumentRecord",
    "SyncResult",
    "SyncStatus",
    "ChannelLease",
    "ArchiveResult",
    "ArchiveOmission",
    # errors
    "DriveMirrorError",
    "InvalidStateError",
    "ProviderError",
    "AuthExpiredError",
    "PermissionError",
    "InvalidArgumentError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "QuotaExceededError",
    "NotSupportedError",
    "NetworkError",
    "ProviderTimeout",
    "ApiError",
    "FullSyncAborted",
    "ItemSyncError",
    "ArchiveItemError",
    "WebhookValidationError",
]
