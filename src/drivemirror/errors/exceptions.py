"""Exception hierarchy and HTTP error mapping for drivemirror."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DriveMirrorError(Exception):
    """
    Base exception for drivemirror.

    Attributes:
        details: Optional structured information (e.g., HTTP status, remote id).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class InvalidStateError(DriveMirrorError):
    """Raised when a component is used in an invalid state (e.g., not connected)."""


# ----------------------------
# Provider errors (DriveGateway)
# ----------------------------
class ProviderError(DriveMirrorError):
    """Raised by a DriveGateway when the remote provider rejects a call."""

    kind: str = "provider"


class AuthExpiredError(ProviderError):
    """Raised when provider credentials are missing, expired or revoked (HTTP 401)."""

    kind = "auth_expired"


class PermissionError(ProviderError):
    """Raised when access is denied (HTTP 403 non-quota)."""

    kind = "permission_denied"


class InvalidArgumentError(ProviderError):
    """Raised when request arguments are invalid (HTTP 400, undownloadable types)."""

    kind = "invalid_argument"


class NotFoundError(ProviderError):
    """Raised when a remote item or folder path does not exist (HTTP 404)."""

    kind = "not_found"


class ConflictError(ProviderError):
    """Raised when the target already exists (HTTP 409/412, duplicate folder name)."""

    kind = "conflict"


class RateLimitError(ProviderError):
    """Raised when rate-limited (HTTP 429)."""

    kind = "rate_limited"


class QuotaExceededError(ProviderError):
    """Raised when quota is exceeded (HTTP 403 with quota-related reason)."""

    kind = "quota_exceeded"


class NotSupportedError(ProviderError):
    """Raised when a provider backend lacks a capability (e.g., push notifications)."""

    kind = "not_supported"


class NetworkError(ProviderError):
    """Raised when network issues prevent the request."""

    kind = "network"


class ProviderTimeout(NetworkError):
    """Raised when a provider call exceeds its timeout."""

    kind = "timeout"


class ApiError(ProviderError):
    """Raised for unclassified provider errors (5xx, unknown 4xx, etc.)."""

    kind = "api"


# ----------------------------
# Core errors
# ----------------------------
class FullSyncAborted(DriveMirrorError):
    """Raised when a reconciliation pass cannot fetch its inputs; the mirror is untouched."""


class ItemSyncError(DriveMirrorError):
    """A single insert/update/delete failed during the apply phase of a pass."""

    def __init__(
        self,
        message: str,
        *,
        remote_id: str,
        operation: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            details={"remote_id": remote_id, "operation": operation},
            cause=cause,
        )
        self.remote_id = remote_id
        self.operation = operation


class ArchiveItemError(DriveMirrorError):
    """A single file could not be added to an archive."""

    def __init__(
        self,
        message: str,
        *,
        remote_id: str,
        name: str | None = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            details={"remote_id": remote_id, "name": name},
            cause=cause,
        )
        self.remote_id = remote_id
        self.name = name


class WebhookValidationError(DriveMirrorError):
    """Raised when a push notification does not belong to the active channel."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to provider exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_QUOTA_REASON_KEYWORDS: tuple[str, ...] = (
    "quota",
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "usageLimits",
    "storageQuotaExceeded",
)


def _is_quota_reason(reason: str | None) -> bool:
    if not reason:
        return False
    return any(key.lower() in reason.lower() for key in _QUOTA_REASON_KEYWORDS)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> ProviderError:
    """
    Map a provider HTTP error to a ProviderError.

    Policy:
        - 400 -> InvalidArgumentError
        - 401 -> AuthExpiredError
        - 403 -> PermissionError, or QuotaExceededError if quota-related
        - 404 -> NotFoundError
        - 408/504 -> ProviderTimeout
        - 409/412 -> ConflictError
        - 429 -> RateLimitError
        - otherwise -> ApiError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 400:
        return InvalidArgumentError(message, details=details, cause=cause)
    if info.status_code == 401:
        return AuthExpiredError(message, details=details, cause=cause)
    if info.status_code == 403:
        if _is_quota_reason(info.reason):
            return QuotaExceededError(message, details=details, cause=cause)
        return PermissionError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code in (408, 504):
        return ProviderTimeout(message, details=details, cause=cause)
    if info.status_code in (409, 412):
        return ConflictError(message, details=details, cause=cause)
    if info.status_code == 429:
        return RateLimitError(message, details=details, cause=cause)

    return ApiError(message, details=details, cause=cause)
