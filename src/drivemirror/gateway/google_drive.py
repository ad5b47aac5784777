"""Google Drive (v3) implementation of DriveGateway."""

from __future__ import annotations

import io
import json
from datetime import timedelta
from typing import Any, Iterator, Optional, Sequence

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from drivemirror.errors import (
    ApiError,
    AuthExpiredError,
    HttpErrorInfo,
    InvalidArgumentError,
    NetworkError,
    ProviderError,
    ProviderTimeout,
    map_http_error,
)
from drivemirror.models import ChannelLease, RemoteItem
from drivemirror.util.mime import FOLDER_MIME, is_download_disallowed, is_folder
from drivemirror.util.time import (
    from_epoch_millis,
    now_utc,
    parse_optional_rfc3339,
    to_epoch_millis,
)

from .base import DriveGateway, RetryPolicy, UploadData

DEFAULT_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/drive",)
DOWNLOAD_CHUNK_SIZE: int = 4 * 1024 * 1024

#: Partial-response fields; everything the mirror row and the walk need.
FILE_FIELDS: str = ",".join((
    "id",
    "name",
    "mimeType",
    "parents",
    "modifiedTime",
    "createdTime",
    "size",
    "webViewLink",
    "webContentLink",
    "thumbnailLink",
))
LIST_FIELDS: str = f"nextPageToken,files({FILE_FIELDS})"


def load_credentials(
    token_file: str,
    scopes: Optional[Sequence[str]] = None,
) -> Credentials:
    """
    Load authorized-user OAuth credentials saved by an earlier consent flow.

    Raises:
        AuthExpiredError: if the token file is missing or unreadable.
    """
    use_scopes = list(scopes) if scopes is not None else list(DEFAULT_SCOPES)
    try:
        return Credentials.from_authorized_user_file(token_file, scopes=use_scopes)
    except (OSError, ValueError) as exc:
        raise AuthExpiredError(
            "Failed to load token_file",
            details={"token_file": token_file},
            cause=exc,
        ) from exc


class GoogleDriveGateway(DriveGateway):
    """
    DriveGateway backed by the Drive v3 API.

    Notes:
        - The Drive `service` object is NOT exposed.
        - `supports_all_drives` is applied to all requests consistently.
        - Drive allows several folders with the same name under one parent,
          so create_folder checks before creating.
    """

    enforces_unique_names = False
    supports_push = True

    def __init__(
        self,
        service: Any,
        *,
        root_folder_name: str = "Documents",
        supports_all_drives: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(root_folder_name, retry_policy=retry_policy)
        self._service = service
        self._supports_all_drives = supports_all_drives

    @classmethod
    def from_service(cls, service: Any, **kwargs: Any) -> "GoogleDriveGateway":
        """Create a gateway from a pre-built Drive service (useful for tests)."""
        return cls(service, **kwargs)

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        *,
        timeout_seconds: float = 30.0,
        **kwargs: Any,
    ) -> "GoogleDriveGateway":
        """Build the Drive service with a per-request socket timeout."""
        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout_seconds))
        service = build("drive", "v3", http=http, cache_discovery=False)
        return cls(service, **kwargs)

    # ----------------------------
    # Metadata
    # ----------------------------
    def get(self, item_id: str) -> RemoteItem:
        req = self._service.files().get(
            fileId=item_id,
            fields=FILE_FIELDS,
            **self._common_get_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_remote_item(data)

    def list_children(self, parent_id: str) -> list[RemoteItem]:
        return self._find_by_query(f"'{parent_id}' in parents and trashed=false")

    # ----------------------------
    # Mutations
    # ----------------------------
    def delete(self, item_id: str) -> None:
        req = self._service.files().delete(
            fileId=item_id,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)

    def rename(self, item_id: str, new_name: str) -> RemoteItem:
        if not new_name or "/" in new_name:
            raise InvalidArgumentError("new_name must be a non-empty name without '/'")
        req = self._service.files().update(
            fileId=item_id,
            body={"name": new_name},
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute)
        return _file_dict_to_remote_item(data)

    def share_link(self, item_id: str) -> str:
        req = self._service.permissions().create(
            fileId=item_id,
            body={"role": "reader", "type": "anyone"},
            fields="id",
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)
        item = self.get(item_id)
        return item.share_link or f"https://drive.google.com/file/d/{item_id}/view"

    def direct_download_url(self, item_id: str) -> str:
        return f"https://drive.google.com/uc?export=download&id={item_id}"

    # ----------------------------
    # Content
    # ----------------------------
    def download(self, item_id: str) -> Iterator[bytes]:
        info = self.get(item_id)
        if is_download_disallowed(info.mime_type):
            raise InvalidArgumentError(
                "Google Docs types and folders have no downloadable content",
                details={"mime_type": info.mime_type, "remote_id": item_id},
            )
        return self._iter_media(item_id)

    def _iter_media(self, item_id: str) -> Iterator[bytes]:
        req = self._service.files().get_media(
            fileId=item_id,
            **self._common_get_kwargs(),
        )
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, req, chunksize=DOWNLOAD_CHUNK_SIZE)
        done = False
        while not done:
            _, done = self._execute(downloader.next_chunk)
            chunk = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
            if chunk:
                yield chunk

    # ----------------------------
    # Push notifications
    # ----------------------------
    def watch(
        self,
        callback_url: str,
        channel_id: str,
        token: str,
        ttl_seconds: int,
    ) -> ChannelLease:
        """Subscribe callback_url to the drive change feed (changes.watch)."""
        start_req = self._service.changes().getStartPageToken(**self._common_get_kwargs())
        start = self._execute(start_req.execute)
        page_token = start.get("startPageToken")

        requested_expiry = now_utc() + timedelta(seconds=ttl_seconds)
        body = {
            "id": channel_id,
            "type": "web_hook",
            "address": callback_url,
            "token": token,
            "expiration": str(to_epoch_millis(requested_expiry)),
        }
        req = self._service.changes().watch(
            pageToken=page_token,
            body=body,
            **self._common_list_kwargs(),
        )
        data = self._execute(req.execute, idempotent=False)

        expiration = data.get("expiration")
        expires_at = from_epoch_millis(expiration) if expiration else requested_expiry
        return ChannelLease(
            channel_id=data.get("id") or channel_id,
            resource_id=data.get("resourceId") or "",
            token=token,
            expires_at=expires_at,
            page_token=page_token,
        )

    def stop_watch(self, lease: ChannelLease) -> None:
        req = self._service.channels().stop(
            body={"id": lease.channel_id, "resourceId": lease.resource_id},
        )
        self._execute(req.execute)

    # ----------------------------
    # Internals
    # ----------------------------
    def _find_or_create_root(self, name: str) -> str:
        q = (
            f"name='{_escape_query(name)}' and mimeType='{FOLDER_MIME}' "
            "and trashed=false"
        )
        found = self._find_by_query(q)
        if found:
            return found[0].id
        return self._create_folder_raw(name, parent_id=None).id

    def _find_child_folder(self, parent_id: str, name: str) -> Optional[RemoteItem]:
        q = (
            f"name='{_escape_query(name)}' and '{parent_id}' in parents "
            f"and mimeType='{FOLDER_MIME}' and trashed=false"
        )
        found = self._find_by_query(q)
        return found[0] if found else None

    def _create_folder_in(self, parent_id: str, name: str) -> RemoteItem:
        return self._create_folder_raw(name, parent_id=parent_id)

    def _create_folder_raw(self, name: str, *, parent_id: Optional[str]) -> RemoteItem:
        body: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id is not None:
            body["parents"] = [parent_id]
        req = self._service.files().create(
            body=body,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute, idempotent=False)
        return _file_dict_to_remote_item(data)

    def _upload_to(
        self,
        parent_id: str,
        file_name: str,
        data: UploadData,
        mime_type: str,
    ) -> RemoteItem:
        if not file_name or "/" in file_name:
            raise InvalidArgumentError("file_name must be a non-empty name without '/'")

        fd = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        media = MediaIoBaseUpload(fd, mimetype=mime_type, resumable=True)
        body = {"name": file_name, "parents": [parent_id]}

        req = self._service.files().create(
            body=body,
            media_body=media,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        payload = self._execute(req.execute, idempotent=False)
        return _file_dict_to_remote_item(payload)

    def _common_get_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _find_by_query(self, q: str) -> list[RemoteItem]:
        items: list[RemoteItem] = []
        page_token: Optional[str] = None

        while True:
            req = self._service.files().list(
                q=q,
                fields=LIST_FIELDS,
                pageToken=page_token,
                pageSize=1000,
                **self._common_list_kwargs(),
            )
            data = self._execute(req.execute)
            for f in data.get("files", []):
                items.append(_file_dict_to_remote_item(f))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return items

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, HttpError):
            info = _http_error_to_info(exc)
            return map_http_error(info, cause=exc)

        if isinstance(exc, RefreshError):
            return AuthExpiredError("OAuth credentials could not be refreshed", cause=exc)

        if isinstance(exc, TimeoutError):
            return ProviderTimeout("Drive request timed out", cause=exc)

        if isinstance(exc, (OSError, TransportError, httplib2.HttpLib2Error)):
            return NetworkError("Network error", cause=exc)

        return ApiError("Drive API error", cause=exc)


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _file_dict_to_remote_item(data: dict[str, Any]) -> RemoteItem:
    item_id = data.get("id")
    name = data.get("name", "")
    mime_type = data.get("mimeType", "")
    parents = data.get("parents") or []

    size = 0
    if isinstance(data.get("size"), str) and data["size"].isdigit():
        size = int(data["size"])
    elif isinstance(data.get("size"), int):
        size = data["size"]

    mime = mime_type if isinstance(mime_type, str) else ""
    return RemoteItem(
        id=item_id if isinstance(item_id, str) else "",
        name=name if isinstance(name, str) else "",
        mime_type=mime,
        is_folder=is_folder(mime),
        parent_id=parents[0] if isinstance(parents, list) and parents else None,
        size_bytes=size,
        created_at=parse_optional_rfc3339(data.get("createdTime")),
        modified_at=parse_optional_rfc3339(data.get("modifiedTime")),
        share_link=data.get("webViewLink"),
        download_link=data.get("webContentLink"),
        thumbnail_link=data.get("thumbnailLink"),
    )


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    status_code = getattr(getattr(exc, "resp", None), "status", None)
    reason = getattr(getattr(exc, "resp", None), "reason", None)

    message = None
    details: dict[str, Any] = {}

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            payload = {}
        err = payload.get("error", {}) if isinstance(payload, dict) else {}
        if isinstance(err, dict):
            message = err.get("message") or None
            errors = err.get("errors") or []
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                details["domain"] = errors[0].get("domain")
                details["reason_detail"] = errors[0].get("reason")
                if isinstance(errors[0].get("reason"), str):
                    reason = errors[0]["reason"]

    if not isinstance(status_code, int):
        status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message,
        details=details or None,
    )
