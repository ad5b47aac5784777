"""DriveGateway contract and provider backends."""

from __future__ import annotations

from .base import DriveGateway, RetryPolicy
from .google_drive import GoogleDriveGateway, load_credentials
from .onedrive import OneDriveGateway

__all__ = [
    "DriveGateway",
    "RetryPolicy",
    "GoogleDriveGateway",
    "OneDriveGateway",
    "load_credentials",
]
