"""Process-wide reconciliation state guarded by a lock."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional


class SyncState:
    """
    Idle/Syncing flag plus bookkeeping for one Reconciler.

    try_begin_sync() and end_sync() are the only mutators of the flag; the
    check-and-set happens under a lock, so two triggers can never both move
    the state from Idle to Syncing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._syncing = False
        self._last_sync_time: Optional[datetime] = None
        self.auto_sync_job_id: Optional[str] = None

    @property
    def is_syncing(self) -> bool:
        with self._lock:
            return self._syncing

    @property
    def last_sync_time(self) -> Optional[datetime]:
        with self._lock:
            return self._last_sync_time

    def try_begin_sync(self) -> bool:
        """Move Idle -> Syncing. Returns False if a pass is already running."""
        with self._lock:
            if self._syncing:
                return False
            self._syncing = True
            return True

    def end_sync(self, completed_at: Optional[datetime] = None) -> None:
        """Move back to Idle; completed_at is recorded only for successful passes."""
        with self._lock:
            self._syncing = False
            if completed_at is not None:
                self._last_sync_time = completed_at
