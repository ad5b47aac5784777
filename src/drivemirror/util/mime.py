"""MIME helpers shared by the provider gateways and the upload route."""

from __future__ import annotations

import mimetypes

FOLDER_MIME: str = "application/vnd.google-apps.folder"
ONEDRIVE_FOLDER_MIME: str = "application/x-onedrive-folder"
FOLDER_MIMES: frozenset[str] = frozenset({FOLDER_MIME, ONEDRIVE_FOLDER_MIME})

GOOGLE_APPS_PREFIX: str = "application/vnd.google-apps."

DEFAULT_MIME: str = "application/octet-stream"


def is_folder(mime_type: str) -> bool:
    return mime_type in FOLDER_MIMES


def is_google_app(mime_type: str) -> bool:
    """True for Docs/Sheets/Slides and every other native Google apps type."""
    return mime_type.startswith(GOOGLE_APPS_PREFIX)


def is_download_disallowed(mime_type: str) -> bool:
    """
    Folders and native Google apps documents have no binary content to
    fetch with a media download (export is not supported).
    """
    return is_folder(mime_type) or is_google_app(mime_type)


def guess_mime(file_name: str) -> str:
    """MIME type for an upload that arrived without a usable Content-Type."""
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_MIME
