"""FastAPI application for drivemirror.

Wires one DriveGateway, the mirror store, the Reconciler, the optional
ChangeNotifier and the ArchiveBuilder into app.state, and runs auto sync
and push-channel registration for the lifetime of the application.

Usage:
    uvicorn drivemirror.app:app_factory --factory --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from drivemirror.api import install_error_handlers, router as api_router
from drivemirror.archive import ArchiveBuilder
from drivemirror.config import MirrorConfig
from drivemirror.documents import DocumentService
from drivemirror.errors import AuthExpiredError, DriveMirrorError, ProviderError
from drivemirror.gateway import DriveGateway, GoogleDriveGateway, OneDriveGateway, load_credentials
from drivemirror.notify import ChangeNotifier
from drivemirror.store import DocumentStore
from drivemirror.sync import JobScheduler, Reconciler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Send drivemirror logs to stdout (idempotent)."""
    root_logger = logging.getLogger("drivemirror")
    root_logger.setLevel(level)
    if any(getattr(h, "_drivemirror", False) for h in root_logger.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._drivemirror = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)


def build_gateway(config: MirrorConfig) -> DriveGateway:
    """
    Create the gateway for the configured provider.

    Raises:
        AuthExpiredError: credentials are missing or unreadable.
    """
    if config.provider == "onedrive":
        if not config.onedrive_access_token:
            raise AuthExpiredError("No OneDrive access token configured")
        return OneDriveGateway.from_access_token(
            config.onedrive_access_token,
            root_folder_name=config.root_folder_name,
            timeout_seconds=config.request_timeout_seconds,
        )
    credentials = load_credentials(config.google_token_file)
    return GoogleDriveGateway.from_credentials(
        credentials,
        root_folder_name=config.root_folder_name,
        timeout_seconds=config.request_timeout_seconds,
    )


def create_app(
    config: Optional[MirrorConfig] = None,
    *,
    gateway: Optional[DriveGateway] = None,
    store: Optional[DocumentStore] = None,
    scheduler: Optional[JobScheduler] = None,
    start_background: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Runtime configuration (defaults when omitted).
        gateway: Pre-built gateway; built from config when omitted. When no
            gateway can be built the app still serves /health and the
            Drive-backed routes answer 503.
        store: Mirror store; opened from config.database_url when omitted.
        scheduler: Shared job scheduler for auto sync and lease renewal.
        start_background: Start auto sync and register the push channel on startup.
    """
    config = config or MirrorConfig()
    owns_store = store is None
    store = store if store is not None else DocumentStore(config.database_url)
    scheduler = scheduler or JobScheduler()

    if gateway is None:
        try:
            gateway = build_gateway(config)
        except ProviderError as exc:
            logger.warning("Drive not connected: %s", exc)

    reconciler: Optional[Reconciler] = None
    notifier: Optional[ChangeNotifier] = None
    documents: Optional[DocumentService] = None
    archiver: Optional[ArchiveBuilder] = None

    if gateway is not None:
        reconciler = Reconciler(
            gateway,
            store,
            interval_seconds=config.sync_interval_seconds,
            scheduler=scheduler,
            on_auth_expired=lambda exc: _on_auth_expired(application, exc),
        )
        if config.webhook_url and gateway.supports_push:
            notifier = ChangeNotifier(
                gateway,
                reconciler,
                ttl_seconds=config.webhook_ttl_seconds,
                renew_margin_seconds=config.webhook_renew_margin_seconds,
                scheduler=scheduler,
            )
        documents = DocumentService(gateway, store, share_uploads=config.share_uploads)
        archiver = ArchiveBuilder(gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("drivemirror starting (provider: %s, root: %s)", config.provider, config.root_path)
        if start_background and reconciler is not None:
            reconciler.start_auto_sync()
        if start_background and notifier is not None and config.webhook_url:
            try:
                notifier.register_webhook(config.webhook_url)
            except DriveMirrorError as exc:
                logger.warning("Push notifications unavailable, relying on timer sync: %s", exc)

        yield

        logger.info("drivemirror shutting down")
        if notifier is not None:
            notifier.stop()
        if reconciler is not None:
            reconciler.shutdown()
        scheduler.shutdown()
        if owns_store:
            store.close()

    application = FastAPI(
        title="drivemirror",
        description="Relational mirror of a cloud drive folder",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.config = config
    application.state.store = store
    application.state.gateway = gateway
    application.state.reconciler = reconciler
    application.state.notifier = notifier
    application.state.documents = documents
    application.state.archiver = archiver

    application.include_router(api_router)
    install_error_handlers(application)

    return application


def _on_auth_expired(app: FastAPI, exc: AuthExpiredError) -> None:
    notifier: Optional[ChangeNotifier] = app.state.notifier
    if notifier is not None:
        notifier.stop()
    logger.error("Drive credentials expired, re-authentication required: %s", exc)


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    config = MirrorConfig.from_env()
    setup_logging(config.log_level)
    return create_app(config)
