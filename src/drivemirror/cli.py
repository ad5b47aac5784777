"""Command-line interface for drivemirror.

Commands:
- serve: Run the HTTP server (auto sync and push notifications included)
- sync: Run one reconciliation pass and print its counts
"""

from __future__ import annotations

import sys

import click

from drivemirror.config import MirrorConfig
from drivemirror.errors import DriveMirrorError


@click.group()
@click.version_option(package_name="drivemirror")
def main() -> None:
    """drivemirror - keep a database mirror of a cloud drive folder."""


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address.")
@click.option("--port", "-p", type=int, default=3000, show_default=True, help="Bind port.")
def serve(host: str, port: int) -> None:
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run("drivemirror.app:app_factory", factory=True, host=host, port=port)


@main.command()
@click.option(
    "--database-url",
    default=None,
    help="Mirror database URL (default: DRIVEMIRROR_DATABASE_URL or sqlite:///drivemirror.db).",
)
def sync(database_url: str | None) -> None:
    """Run one reconciliation pass against the configured drive.

    Examples:

        # Mirror into the default SQLite file
        drivemirror sync

        # Mirror into another database
        drivemirror sync --database-url postgresql://localhost/docs
    """
    from drivemirror.app import build_gateway, setup_logging
    from drivemirror.store import DocumentStore
    from drivemirror.sync import Reconciler

    try:
        config = MirrorConfig.from_env()
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    setup_logging(config.log_level)

    store = DocumentStore(database_url or config.database_url)
    try:
        gateway = build_gateway(config)
        result = Reconciler(gateway, store).sync_now()
    except DriveMirrorError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        store.close()

    click.echo(
        f"Sync completed: {result.added} added, {result.updated} updated, "
        f"{result.deleted} deleted, {result.errors} errors"
    )
    if result.errors:
        sys.exit(1)
