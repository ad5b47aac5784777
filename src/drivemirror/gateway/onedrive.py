"""OneDrive (Microsoft Graph) implementation of DriveGateway."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional
from urllib.parse import quote

import httpx

from drivemirror.errors import (
    ApiError,
    HttpErrorInfo,
    InvalidArgumentError,
    NetworkError,
    NotFoundError,
    ProviderError,
    ProviderTimeout,
    map_http_error,
)
from drivemirror.models import RemoteItem
from drivemirror.util.mime import DEFAULT_MIME, ONEDRIVE_FOLDER_MIME
from drivemirror.util.time import parse_optional_rfc3339

from .base import DriveGateway, RetryPolicy, UploadData

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
PAGE_SIZE = 200


class OneDriveGateway(DriveGateway):
    """
    DriveGateway backed by the Microsoft Graph `/me/drive` endpoints.

    Graph rejects duplicate names itself (conflictBehavior=fail), and has no
    push channel that fits the header-based notifier, so this backend relies
    on timer-driven reconciliation only.
    """

    enforces_unique_names = True
    supports_push = False

    def __init__(
        self,
        client: httpx.Client,
        *,
        root_folder_name: str = "Documents",
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(root_folder_name, retry_policy=retry_policy)
        self._client = client

    @classmethod
    def from_access_token(
        cls,
        access_token: str,
        *,
        timeout_seconds: float = 30.0,
        base_url: str = GRAPH_BASE_URL,
        **kwargs: Any,
    ) -> "OneDriveGateway":
        client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout_seconds,
            follow_redirects=True,
        )
        return cls(client, **kwargs)

    def close(self) -> None:
        self._client.close()

    # ----------------------------
    # Metadata
    # ----------------------------
    def get(self, item_id: str) -> RemoteItem:
        data = self._request_json("GET", f"/me/drive/items/{item_id}")
        return _graph_item_to_remote_item(data)

    def list_children(self, parent_id: str) -> list[RemoteItem]:
        items: list[RemoteItem] = []
        url: Optional[str] = f"/me/drive/items/{parent_id}/children?$top={PAGE_SIZE}"
        while url:
            data = self._request_json("GET", url)
            for entry in data.get("value", []):
                if "deleted" in entry:
                    continue
                items.append(_graph_item_to_remote_item(entry))
            url = data.get("@odata.nextLink")
        return items

    # ----------------------------
    # Mutations
    # ----------------------------
    def delete(self, item_id: str) -> None:
        self._request("DELETE", f"/me/drive/items/{item_id}")

    def rename(self, item_id: str, new_name: str) -> RemoteItem:
        if not new_name or "/" in new_name:
            raise InvalidArgumentError("new_name must be a non-empty name without '/'")
        data = self._request_json("PATCH", f"/me/drive/items/{item_id}", json={"name": new_name})
        return _graph_item_to_remote_item(data)

    def share_link(self, item_id: str) -> str:
        data = self._request_json(
            "POST",
            f"/me/drive/items/{item_id}/createLink",
            json={"type": "view", "scope": "anonymous"},
            idempotent=False,
        )
        link = (data.get("link") or {}).get("webUrl")
        if not link:
            raise ApiError("Graph did not return a sharing link", details={"remote_id": item_id})
        return link

    def direct_download_url(self, item_id: str) -> str:
        data = self._request_json("GET", f"/me/drive/items/{item_id}")
        url = data.get("@microsoft.graph.downloadUrl")
        if not url:
            raise InvalidArgumentError(
                "Item has no downloadable content",
                details={"remote_id": item_id},
            )
        return url

    # ----------------------------
    # Content
    # ----------------------------
    def download(self, item_id: str) -> Iterator[bytes]:
        info = self.get(item_id)
        if info.is_folder:
            raise InvalidArgumentError(
                "Folders have no downloadable content",
                details={"remote_id": item_id},
            )
        return self._iter_content(item_id)

    def _iter_content(self, item_id: str) -> Iterator[bytes]:
        try:
            with self._client.stream("GET", f"/me/drive/items/{item_id}/content") as resp:
                if resp.is_error:
                    resp.read()
                resp.raise_for_status()
                for chunk in resp.iter_bytes():
                    if chunk:
                        yield chunk
        except httpx.HTTPError as exc:
            raise self._map_exception(exc) from exc

    # ----------------------------
    # Internals
    # ----------------------------
    def _find_or_create_root(self, name: str) -> str:
        try:
            data = self._request_json("GET", f"/me/drive/root:/{quote(name)}")
            return str(data["id"])
        except NotFoundError:
            logger.info("Root folder %r not found on OneDrive, creating it", name)
        data = self._request_json(
            "POST",
            "/me/drive/root/children",
            json=_folder_body(name),
            idempotent=False,
        )
        return str(data["id"])

    def _create_folder_in(self, parent_id: str, name: str) -> RemoteItem:
        data = self._request_json(
            "POST",
            f"/me/drive/items/{parent_id}/children",
            json=_folder_body(name),
            idempotent=False,
        )
        return _graph_item_to_remote_item(data)

    def _upload_to(
        self,
        parent_id: str,
        file_name: str,
        data: UploadData,
        mime_type: str,
    ) -> RemoteItem:
        if not file_name or "/" in file_name:
            raise InvalidArgumentError("file_name must be a non-empty name without '/'")
        content = data if isinstance(data, (bytes, bytearray)) else data.read()
        payload = self._request_json(
            "PUT",
            f"/me/drive/items/{parent_id}:/{quote(file_name)}:/content",
            content=bytes(content),
            headers={"Content-Type": mime_type or DEFAULT_MIME},
            idempotent=False,
        )
        return _graph_item_to_remote_item(payload)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        resp = self._client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    def _request(self, method: str, url: str, *, idempotent: bool = True, **kwargs: Any) -> httpx.Response:
        return self._execute(lambda: self._send(method, url, **kwargs), idempotent=idempotent)

    def _request_json(self, method: str, url: str, *, idempotent: bool = True, **kwargs: Any) -> dict[str, Any]:
        def send() -> dict[str, Any]:
            # Decoding happens under _execute so a malformed body maps to ApiError.
            data = self._send(method, url, **kwargs).json()
            return data if isinstance(data, dict) else {}

        return self._execute(send, idempotent=idempotent)

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, httpx.HTTPStatusError):
            return map_http_error(_status_error_to_info(exc), cause=exc)
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeout("Graph request timed out", cause=exc)
        if isinstance(exc, httpx.TransportError):
            return NetworkError("Network error", cause=exc)
        return ApiError("Graph API error", cause=exc)


def _folder_body(name: str) -> dict[str, Any]:
    return {
        "name": name,
        "folder": {},
        "@microsoft.graph.conflictBehavior": "fail",
    }


def _graph_item_to_remote_item(data: dict[str, Any]) -> RemoteItem:
    is_dir = "folder" in data
    file_facet = data.get("file") or {}
    mime_type = ONEDRIVE_FOLDER_MIME if is_dir else (file_facet.get("mimeType") or DEFAULT_MIME)
    size = data.get("size")
    parent = data.get("parentReference") or {}

    return RemoteItem(
        id=str(data.get("id", "")),
        name=str(data.get("name", "")),
        mime_type=mime_type,
        is_folder=is_dir,
        parent_id=parent.get("id"),
        size_bytes=size if isinstance(size, int) and not is_dir else 0,
        created_at=parse_optional_rfc3339(data.get("createdDateTime")),
        modified_at=parse_optional_rfc3339(data.get("lastModifiedDateTime")),
        share_link=data.get("webUrl"),
        download_link=data.get("@microsoft.graph.downloadUrl"),
    )


def _status_error_to_info(exc: httpx.HTTPStatusError) -> HttpErrorInfo:
    resp = exc.response
    reason: Optional[str] = resp.reason_phrase or None
    message: Optional[str] = None
    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        message = err.get("message") or None
        if isinstance(err.get("code"), str):
            reason = err["code"]
    return HttpErrorInfo(
        status_code=resp.status_code,
        reason=reason,
        message=message,
    )
