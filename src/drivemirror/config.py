"""Runtime configuration for drivemirror, read from DRIVEMIRROR_* variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

PROVIDERS: tuple[str, ...] = ("google", "onedrive")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class MirrorConfig:
    """Configuration for one mirror server.

    Attributes:
        provider: Remote drive backend ("google" or "onedrive").
        database_url: SQLAlchemy URL of the mirror database.
        root_folder_name: Name of the remote folder mirrored as "<name>/".
        sync_interval_seconds: Period of the timer-driven reconciliation.
        webhook_url: Public URL of the /webhook/drive route; push is disabled when unset.
        webhook_ttl_seconds: Requested lifetime of a push channel.
        webhook_renew_margin_seconds: How long before expiry the channel is renewed.
        share_uploads: Issue an anyone-with-link share for uploaded files.
        google_token_file: Authorized-user token JSON for the Google backend.
        onedrive_access_token: Bearer token for the OneDrive backend.
        request_timeout_seconds: Per-request timeout for provider calls.
        log_level: Level for the "drivemirror" logger.
    """

    provider: str = "google"
    database_url: str = "sqlite:///drivemirror.db"
    root_folder_name: str = "Documents"
    sync_interval_seconds: int = 300
    webhook_url: Optional[str] = None
    webhook_ttl_seconds: int = 86400
    webhook_renew_margin_seconds: int = 600
    share_uploads: bool = True
    google_token_file: str = "token.json"
    onedrive_access_token: Optional[str] = None
    request_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate and normalize values."""
        self.provider = self.provider.strip().lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"provider must be one of {', '.join(PROVIDERS)}")
        self.root_folder_name = self.root_folder_name.strip().strip("/")
        if not self.root_folder_name:
            raise ValueError("root_folder_name must not be empty")
        if self.sync_interval_seconds <= 0:
            raise ValueError("sync_interval_seconds must be positive")
        if self.webhook_renew_margin_seconds >= self.webhook_ttl_seconds:
            raise ValueError("webhook_renew_margin_seconds must be smaller than webhook_ttl_seconds")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if self.webhook_url is not None and not self.webhook_url.strip():
            self.webhook_url = None
        self.log_level = self.log_level.upper()

    @property
    def root_path(self) -> str:
        return f"{self.root_folder_name}/"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MirrorConfig":
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> Optional[str]:
            value = env.get(f"DRIVEMIRROR_{name}")
            return value if value not in (None, "") else None

        return cls(
            provider=get("PROVIDER") or defaults.provider,
            database_url=get("DATABASE_URL") or defaults.database_url,
            root_folder_name=get("ROOT_FOLDER") or defaults.root_folder_name,
            sync_interval_seconds=_int(get("SYNC_INTERVAL"), defaults.sync_interval_seconds),
            webhook_url=get("WEBHOOK_URL"),
            webhook_ttl_seconds=_int(get("WEBHOOK_TTL"), defaults.webhook_ttl_seconds),
            webhook_renew_margin_seconds=_int(
                get("WEBHOOK_RENEW_MARGIN"), defaults.webhook_renew_margin_seconds
            ),
            share_uploads=_bool(get("SHARE_UPLOADS"), defaults.share_uploads),
            google_token_file=get("GOOGLE_TOKEN_FILE") or defaults.google_token_file,
            onedrive_access_token=get("ONEDRIVE_ACCESS_TOKEN"),
            request_timeout_seconds=float(get("REQUEST_TIMEOUT") or defaults.request_timeout_seconds),
            log_level=get("LOG_LEVEL") or defaults.log_level,
        )


def _int(value: Optional[str], default: int) -> int:
    return int(value) if value is not None else default


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")
