"""Reconciler: keeps the relational mirror consistent with the remote drive."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from drivemirror.errors import (
    AuthExpiredError,
    FullSyncAborted,
    ItemSyncError,
    ProviderError,
)
from drivemirror.gateway.base import DriveGateway, describe
from drivemirror.models import RemoteItem, SyncResult, SyncStatus
from drivemirror.store import DocumentStore, mutable_fields_from_item, record_from_item
from drivemirror.util.time import now_utc

from .scheduler import JobScheduler
from .state import SyncState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS: int = 300
AUTO_SYNC_JOB_ID: str = "drivemirror-auto-sync"


class Reconciler:
    """
    Full-diff synchronization between a DriveGateway and a DocumentStore.

    Policy:
        - At most one pass runs at a time; a request made while a pass is
          running is dropped and answered with a skipped result.
        - A pass is fatal only when its inputs cannot be fetched
          (FullSyncAborted, nothing written). Per-item write failures are
          counted and the pass continues.
        - A mirror row is refreshed only if the remote modification time is
          strictly newer, so a pass without remote changes writes nothing.
    """

    def __init__(
        self,
        gateway: DriveGateway,
        store: DocumentStore,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        scheduler: Optional[JobScheduler] = None,
        on_auth_expired: Optional[Callable[[AuthExpiredError], None]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._gateway = gateway
        self._store = store
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler
        self._on_auth_expired = on_auth_expired
        self._state = SyncState()

    @property
    def state(self) -> SyncState:
        return self._state

    # ----------------------------
    # Triggers
    # ----------------------------
    def sync_now(self) -> SyncResult:
        """
        Run one guarded reconciliation pass.

        Returns:
            The pass result, or SyncResult(skipped=True) if a pass is running.

        Raises:
            FullSyncAborted: the remote structure or the mirror could not be read.
        """
        if not self._state.try_begin_sync():
            logger.info("Sync already in progress, skipping")
            return SyncResult.skipped_result()

        started = time.monotonic()
        completed_at: Optional[datetime] = None
        logger.info("Starting reconciliation pass")
        try:
            result = self.full_sync()
            completed_at = now_utc()
        except FullSyncAborted as exc:
            logger.error("Reconciliation aborted: %s", exc)
            self._handle_abort(exc)
            raise
        finally:
            self._state.end_sync(completed_at)

        result.duration_seconds = time.monotonic() - started
        logger.info(
            "Reconciliation finished in %.2fs: %d added, %d updated, %d deleted, %d errors",
            result.duration_seconds,
            result.added,
            result.updated,
            result.deleted,
            result.errors,
        )
        return result

    def full_sync(self) -> SyncResult:
        """Diff the remote tree against the mirror and apply inserts/updates/deletes."""
        try:
            remote_items = self._gateway.full_structure()
        except ProviderError as exc:
            raise FullSyncAborted(
                "Failed to fetch remote structure",
                details={"stage": "remote_listing", "kind": exc.kind},
                cause=exc,
            ) from exc

        try:
            local_records = self._store.select_all()
        except SQLAlchemyError as exc:
            raise FullSyncAborted(
                "Failed to read mirror table",
                details={"stage": "mirror_listing"},
                cause=exc,
            ) from exc

        result = SyncResult()
        unmatched = {record.remote_id: record for record in local_records}
        seen: set[str] = set()

        for item in remote_items:
            # Items with several parents show up once per parent.
            if item.id in seen:
                continue
            seen.add(item.id)

            record = unmatched.pop(item.id, None)
            if record is None:
                if self._apply(result, "insert", item.id, describe(item), lambda: self._insert(item)):
                    result.added += 1
            elif _is_newer(item.modified_at, record.modified_at):
                if self._apply(result, "update", item.id, describe(item), lambda: self._update(item)):
                    result.updated += 1

        for remote_id, record in unmatched.items():
            label = f"{record.name} ({remote_id})"
            if self._apply(result, "delete", remote_id, label, lambda: self._store.delete(remote_id)):
                result.deleted += 1

        return result

    # ----------------------------
    # Scheduling
    # ----------------------------
    def start_auto_sync(self, interval_seconds: Optional[float] = None) -> None:
        """Sync immediately, then every interval_seconds (replaces a running schedule)."""
        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValueError("interval_seconds must be positive")
            self._interval_seconds = interval_seconds
        if self._scheduler is None:
            self._scheduler = JobScheduler()

        self._scheduler.every(
            AUTO_SYNC_JOB_ID,
            self._scheduled_sync,
            self._interval_seconds,
            run_now=True,
            name="Drive mirror reconciliation",
        )
        self._state.auto_sync_job_id = AUTO_SYNC_JOB_ID
        logger.info("Auto sync started (interval: %ss)", self._interval_seconds)

    def stop_auto_sync(self) -> None:
        if self._state.auto_sync_job_id is None:
            return
        if self._scheduler is not None:
            self._scheduler.cancel(self._state.auto_sync_job_id)
        self._state.auto_sync_job_id = None
        logger.info("Auto sync paused")

    def get_status(self) -> SyncStatus:
        job_id = self._state.auto_sync_job_id
        next_sync_time = None
        if job_id is not None and self._scheduler is not None:
            next_sync_time = self._scheduler.next_run_time(job_id)
        return SyncStatus(
            is_syncing=self._state.is_syncing,
            last_sync_time=self._state.last_sync_time,
            auto_sync_active=job_id is not None,
            next_sync_time=next_sync_time,
        )

    def shutdown(self) -> None:
        self.stop_auto_sync()

    # ----------------------------
    # Internals
    # ----------------------------
    def _scheduled_sync(self) -> None:
        try:
            self.sync_now()
        except Exception:
            logger.exception("Scheduled reconciliation failed")

    def _handle_abort(self, exc: FullSyncAborted) -> None:
        if not isinstance(exc.cause, AuthExpiredError):
            return
        logger.warning("Provider credentials expired; pausing auto sync until re-authentication")
        self.stop_auto_sync()
        if self._on_auth_expired is not None:
            self._on_auth_expired(exc.cause)

    def _insert(self, item: RemoteItem) -> None:
        self._store.insert(record_from_item(item))

    def _update(self, item: RemoteItem) -> None:
        self._store.update(item.id, **mutable_fields_from_item(item))

    def _apply(
        self,
        result: SyncResult,
        operation: str,
        remote_id: str,
        label: str,
        func: Callable[[], object],
    ) -> bool:
        try:
            func()
            return True
        except Exception as exc:
            self._record_failure(result, operation, remote_id, label, exc)
            return False

    def _record_failure(
        self,
        result: SyncResult,
        operation: str,
        remote_id: str,
        label: str,
        exc: Exception,
    ) -> None:
        error = ItemSyncError(
            f"Failed to {operation} {label}",
            remote_id=remote_id,
            operation=operation,
            cause=exc,
        )
        logger.warning("%s: %s", error, exc)
        result.errors += 1
        result.failed_ids.append(remote_id)


def _is_newer(remote: Optional[datetime], local: Optional[datetime]) -> bool:
    if remote is None:
        return False
    if local is None:
        return True
    return remote > local
