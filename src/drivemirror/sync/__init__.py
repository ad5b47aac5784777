"""Reconciliation engine and its scheduling."""

from __future__ import annotations

from .reconciler import AUTO_SYNC_JOB_ID, DEFAULT_INTERVAL_SECONDS, Reconciler
from .scheduler import JobScheduler
from .state import SyncState

__all__ = [
    "Reconciler",
    "SyncState",
    "JobScheduler",
    "AUTO_SYNC_JOB_ID",
    "DEFAULT_INTERVAL_SECONDS",
]
