"""API router aggregation and error translation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from drivemirror.api.archive import router as archive_router
from drivemirror.api.documents import router as documents_router
from drivemirror.api.health import router as health_router
from drivemirror.errors import FullSyncAborted, ProviderError

logger = logging.getLogger(__name__)

router = APIRouter()

router.include_router(health_router)
router.include_router(documents_router)
router.include_router(archive_router)

STATUS_BY_KIND: dict[str, int] = {
    "invalid_argument": status.HTTP_400_BAD_REQUEST,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "quota_exceeded": status.HTTP_429_TOO_MANY_REQUESTS,
    "not_supported": status.HTTP_501_NOT_IMPLEMENTED,
    "auth_expired": status.HTTP_503_SERVICE_UNAVAILABLE,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_for(exc: ProviderError) -> int:
    """HTTP status for a provider error; unknown kinds are a bad gateway."""
    return STATUS_BY_KIND.get(exc.kind, status.HTTP_502_BAD_GATEWAY)


async def _provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content={"error": str(exc), "kind": exc.kind},
    )


async def _sync_aborted_handler(request: Request, exc: FullSyncAborted) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Sync failed", "details": str(exc)},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProviderError, _provider_error_handler)
    app.add_exception_handler(FullSyncAborted, _sync_aborted_handler)
