"""Provider-neutral DriveGateway contract and the logic shared by all backends."""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Iterator, Optional, TypeVar, Union

from drivemirror.errors import (
    ApiError,
    ConflictError,
    NetworkError,
    NotFoundError,
    NotSupportedError,
    ProviderError,
    RateLimitError,
)
from drivemirror.models import ChannelLease, RemoteItem
from drivemirror.util.paths import folder_segments, normalize_folder_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

UploadData = Union[bytes, BinaryIO]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay_sec: float = 1.0


class DriveGateway(abc.ABC):
    """
    Stateless wrapper around one remote drive provider.

    Subclasses implement the single-request primitives; folder path
    resolution, the recursive walk and duplicate-name checks live here so
    that every backend behaves the same way.

    Notes:
        - Paths follow the mirror convention "<root>/a/b/" and are relative
          to the configured root folder, which is looked up by name (and
          created when missing) on first use.
        - No call is idempotent-safe: create/upload are retried only when the
          provider rejected them outright (rate limit).
    """

    #: Whether the provider rejects duplicate names in a folder on its own.
    enforces_unique_names: bool = False
    #: Whether watch()/stop_watch() are available.
    supports_push: bool = False

    def __init__(
        self,
        root_folder_name: str = "Documents",
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        if not root_folder_name or "/" in root_folder_name:
            raise ValueError("root_folder_name must be a non-empty name without '/'")
        self._root_folder_name = root_folder_name
        self._root_id: Optional[str] = None
        self._retry_policy = retry_policy or RetryPolicy()

    # ----------------------------
    # Root handling
    # ----------------------------
    @property
    def root_path(self) -> str:
        return f"{self._root_folder_name}/"

    @property
    def root_id(self) -> str:
        """Id of the configured root folder (resolved once, then cached)."""
        if self._root_id is None:
            self._root_id = self._find_or_create_root(self._root_folder_name)
            logger.info("Root folder %r resolved to %s", self._root_folder_name, self._root_id)
        return self._root_id

    # ----------------------------
    # Provider primitives
    # ----------------------------
    @abc.abstractmethod
    def _find_or_create_root(self, name: str) -> str:
        """Return the id of the top-level folder called name, creating it if needed."""

    @abc.abstractmethod
    def get(self, item_id: str) -> RemoteItem:
        """Fetch metadata for one item (path fields left empty)."""

    @abc.abstractmethod
    def list_children(self, parent_id: str) -> list[RemoteItem]:
        """List the direct, non-trashed children of a folder (one level)."""

    @abc.abstractmethod
    def _create_folder_in(self, parent_id: str, name: str) -> RemoteItem:
        ...

    @abc.abstractmethod
    def _upload_to(
        self,
        parent_id: str,
        file_name: str,
        data: UploadData,
        mime_type: str,
    ) -> RemoteItem:
        ...

    @abc.abstractmethod
    def download(self, item_id: str) -> Iterator[bytes]:
        """
        Stream the content of a file as byte chunks.

        Errors surface while iterating, so a consumer must not treat the
        content as complete before the iterator is exhausted.
        """

    @abc.abstractmethod
    def delete(self, item_id: str) -> None:
        ...

    @abc.abstractmethod
    def rename(self, item_id: str, new_name: str) -> RemoteItem:
        ...

    @abc.abstractmethod
    def share_link(self, item_id: str) -> str:
        """Grant anyone-with-the-link read access and return the viewer URL."""

    @abc.abstractmethod
    def direct_download_url(self, item_id: str) -> str:
        ...

    @abc.abstractmethod
    def _map_exception(self, exc: Exception) -> ProviderError:
        ...

    # ----------------------------
    # Push notifications (optional capability)
    # ----------------------------
    def watch(
        self,
        callback_url: str,
        channel_id: str,
        token: str,
        ttl_seconds: int,
    ) -> ChannelLease:
        raise NotSupportedError(
            "Push notifications are not supported by this provider",
            details={"provider": type(self).__name__},
        )

    def stop_watch(self, lease: ChannelLease) -> None:
        raise NotSupportedError(
            "Push notifications are not supported by this provider",
            details={"provider": type(self).__name__},
        )

    # ----------------------------
    # Shared operations
    # ----------------------------
    def create_folder(self, parent_path: str, name: str) -> RemoteItem:
        """
        Create folder `name` under the folder at parent_path.

        Raises:
            NotFoundError: parent_path does not exist.
            ConflictError: a folder with that name already exists there.
        """
        folder_path = normalize_folder_path(parent_path, self.root_path)
        parent_id = self.resolve_folder_id(folder_path)
        if not self.enforces_unique_names and self._find_child_folder(parent_id, name):
            raise ConflictError(
                "Folder already exists",
                details={"parent_path": folder_path, "name": name},
            )
        return self._create_folder_in(parent_id, name).located(folder_path)

    def upload(
        self,
        parent_path: str,
        file_name: str,
        data: UploadData,
        mime_type: str,
    ) -> RemoteItem:
        folder_path = normalize_folder_path(parent_path, self.root_path)
        parent_id = self.resolve_folder_id(folder_path)
        return self._upload_to(parent_id, file_name, data, mime_type).located(folder_path)

    def resolve_folder_id(self, folder_path: str) -> str:
        """Walk folder_path segment by segment from the root and return the folder id."""
        parent_id = self.root_id
        walked = self.root_path
        for segment in folder_segments(folder_path, self.root_path):
            child = self._find_child_folder(parent_id, segment)
            walked += segment + "/"
            if child is None:
                raise NotFoundError("Folder not found", details={"folder_path": walked})
            parent_id = child.id
        return parent_id

    def walk(
        self,
        root_id: Optional[str] = None,
        base_path: Optional[str] = None,
    ) -> Iterator[RemoteItem]:
        """
        Lazily yield every item below root_id, depth-first.

        A folder is yielded before its contents. Each item is annotated with
        its path relative to base_path (defaults to the root path).
        """
        start = root_id if root_id is not None else self.root_id
        prefix = self.root_path if base_path is None else base_path
        yield from self._walk_folder(start, prefix)

    def full_structure(
        self,
        root_id: Optional[str] = None,
        base_path: Optional[str] = None,
    ) -> list[RemoteItem]:
        """
        Recursive listing of the whole tree under root_id.

        The walk is buffered: a listing failure anywhere raises and no partial
        structure is returned. Memory grows with the size of the tree.
        """
        return list(self.walk(root_id, base_path))

    # ----------------------------
    # Internals
    # ----------------------------
    def _walk_folder(self, folder_id: str, folder_path: str) -> Iterator[RemoteItem]:
        for child in self.list_children(folder_id):
            child.located(folder_path)
            yield child
            if child.is_folder:
                yield from self._walk_folder(child.id, child.path)

    def _find_child_folder(self, parent_id: str, name: str) -> Optional[RemoteItem]:
        for child in self.list_children(parent_id):
            if child.is_folder and child.name == name:
                return child
        return None

    def _execute(self, func: Callable[[], T], *, idempotent: bool = True) -> T:
        """
        Run one provider request, retrying transient failures with backoff.

        Non-idempotent requests (create/upload) are retried only on rate
        limiting, where the provider guarantees nothing was applied.
        """
        delay = self._retry_policy.initial_delay_sec
        for attempt in range(self._retry_policy.max_retries + 1):
            try:
                return func()
            except ProviderError:
                raise
            except Exception as exc:
                mapped = self._map_exception(exc)
                if self._should_retry(mapped, idempotent) and attempt < self._retry_policy.max_retries:
                    logger.debug(
                        "Retrying provider call after %s (attempt %d)",
                        type(mapped).__name__,
                        attempt + 1,
                    )
                    time.sleep(delay)
                    delay *= 2
                    continue
                raise mapped from exc

        raise ApiError("Unexpected retry loop termination")

    def _should_retry(self, exc: ProviderError, idempotent: bool) -> bool:
        if isinstance(exc, RateLimitError):
            return True
        if not idempotent:
            return False
        if isinstance(exc, NetworkError):
            return True
        if isinstance(exc, ApiError):
            status_code = exc.details.get("status_code")
            return isinstance(status_code, int) and 500 <= status_code <= 599
        return False


def describe(item: Any) -> str:
    """Short human label for log lines."""
    name = getattr(item, "name", None) or "?"
    item_id = getattr(item, "id", None) or getattr(item, "remote_id", None) or "?"
    return f"{name} ({item_id})"
