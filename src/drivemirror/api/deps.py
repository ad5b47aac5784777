"""FastAPI dependencies for API routes."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status

from drivemirror.archive import ArchiveBuilder
from drivemirror.documents import DocumentService
from drivemirror.notify import ChangeNotifier
from drivemirror.store import DocumentStore
from drivemirror.sync import Reconciler

DRIVE_UNAVAILABLE = "Drive not connected"


def get_store(request: Request) -> DocumentStore:
    """Get the mirror store from app state."""
    store: DocumentStore = request.app.state.store
    return store


def get_notifier(request: Request) -> Optional[ChangeNotifier]:
    """Get the push notifier from app state, if push is enabled."""
    return getattr(request.app.state, "notifier", None)


def get_reconciler(request: Request) -> Reconciler:
    return _require(request, "reconciler")


def get_documents(request: Request) -> DocumentService:
    return _require(request, "documents")


def get_archiver(request: Request) -> ArchiveBuilder:
    return _require(request, "archiver")


def _require(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DRIVE_UNAVAILABLE,
        )
    return service
