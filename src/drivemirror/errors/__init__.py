"""Public error exports for drivemirror."""

from __future__ import annotations

from .exceptions import (
    ApiError,
    ArchiveItemError,
    AuthExpiredError,
    ConflictError,
    DriveMirrorError,
    FullSyncAborted,
    HttpErrorInfo,
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
    map_http_error,
)

__all__ = [
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
    "HttpErrorInfo",
    "map_http_error",
]
