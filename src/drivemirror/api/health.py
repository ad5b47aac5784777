"""Health, status and push webhook routes."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse

from drivemirror.api.deps import get_notifier, get_reconciler
from drivemirror.notify import ChangeNotifier
from drivemirror.schemas import HealthResponse, StatusResponse, SyncResponse
from drivemirror.sync import Reconciler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Check server health."""
    reconciler: Optional[Reconciler] = getattr(request.app.state, "reconciler", None)
    notifier = get_notifier(request)
    return HealthResponse(
        status="healthy",
        drive="connected" if reconciler is not None else "disconnected",
        sync=reconciler.get_status().as_dict() if reconciler is not None else None,
        realtime=notifier.status() if notifier is not None else {"enabled": False},
    )


@router.post("/webhook/drive", response_class=PlainTextResponse)
async def drive_webhook(request: Request, background_tasks: BackgroundTasks) -> str:
    """
    Receive a provider change notification.

    Always acknowledged with 200: validation and the triggered pass run after
    the response, and rejected notifications are only logged.
    """
    notifier = get_notifier(request)
    if notifier is None:
        logger.debug("Push notification received while push is disabled")
        return "OK"
    background_tasks.add_task(notifier.handle_notification, dict(request.headers))
    return "OK"


@router.get("/api/status", response_model=StatusResponse)
def sync_status(
    request: Request,
    reconciler: Reconciler = Depends(get_reconciler),
) -> StatusResponse:
    notifier: Optional[ChangeNotifier] = get_notifier(request)
    return StatusResponse(
        sync=reconciler.get_status().as_dict(),
        realtime=notifier.status() if notifier is not None else {"enabled": False},
    )


@router.post("/api/sync", response_model=SyncResponse)
def trigger_sync(reconciler: Reconciler = Depends(get_reconciler)) -> SyncResponse:
    """Run a reconciliation pass now and report its counts."""
    result = reconciler.sync_now()
    message = "Sync already in progress" if result.skipped else "Sync completed"
    return SyncResponse(message=message, result=result.as_dict())
