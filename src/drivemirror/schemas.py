"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

# === Health and sync schemas ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    drive: str
    sync: Optional[dict[str, Any]] = None
    realtime: dict[str, Any] = Field(default_factory=dict)


class StatusResponse(BaseModel):
    """Reconciler and push channel state."""

    sync: dict[str, Any]
    realtime: dict[str, Any]


class SyncResponse(BaseModel):
    """Response for a manual reconciliation request."""

    message: str
    result: dict[str, Any]


# === Document schemas ===


class DocumentResponse(BaseModel):
    """A mirrored item."""

    name: str
    type: str
    path: str
    folder: str
    remote_id: str
    size: int
    mimetype: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    share_link: Optional[str] = None
    download_link: Optional[str] = None
    thumbnail_link: Optional[str] = None


class FolderListingResponse(BaseModel):
    """Direct children of one folder."""

    current_path: str
    folders: list[DocumentResponse]
    files: list[DocumentResponse]
    total: int


class SearchResponse(BaseModel):
    """Search results, folders first."""

    query: str
    results: list[DocumentResponse]


class FolderCreateRequest(BaseModel):
    """Request body for folder creation."""

    path: Optional[str] = None
    name: str


class RenameRequest(BaseModel):
    """Request body for renaming an item."""

    path: str
    new_name: str


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


# === Archive schemas ===


class ZipFilesRequest(BaseModel):
    """Request body for archiving a set of files."""

    file_ids: list[str]
    zip_name: Optional[str] = None


class ZipFolderRequest(BaseModel):
    """Request body for archiving a folder."""

    folder_id: str
    folder_name: Optional[str] = None


def document_to_response(record: Any) -> DocumentResponse:
    """Convert a DocumentRecord to its response model."""
    return DocumentResponse(**record.to_dict())
