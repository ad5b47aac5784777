"""Document browsing and mutation routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from fastapi.concurrency import run_in_threadpool

from drivemirror.api.deps import get_documents
from drivemirror.documents import DocumentService
from drivemirror.schemas import (
    DocumentResponse,
    FolderCreateRequest,
    FolderListingResponse,
    MessageResponse,
    RenameRequest,
    SearchResponse,
    document_to_response,
)
from drivemirror.util.mime import DEFAULT_MIME, guess_mime
from drivemirror.util.paths import normalize_folder_path

router = APIRouter(prefix="/api", tags=["documents"])


@router.get("/folders", response_model=FolderListingResponse)
def list_folder(
    path: Optional[str] = None,
    documents: DocumentService = Depends(get_documents),
) -> FolderListingResponse:
    """List the direct children of a folder, folders first."""
    current = normalize_folder_path(path, documents.root_path)
    records = documents.list_folder(current)
    folders = [document_to_response(r) for r in records if r.is_folder]
    files = [document_to_response(r) for r in records if not r.is_folder]
    return FolderListingResponse(
        current_path=current,
        folders=folders,
        files=files,
        total=len(records),
    )


@router.post(
    "/folders",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_folder(
    body: FolderCreateRequest,
    documents: DocumentService = Depends(get_documents),
) -> DocumentResponse:
    return document_to_response(documents.create_folder(body.path, body.name))


@router.get("/search", response_model=SearchResponse)
def search(
    q: str = "",
    limit: int = Query(50, ge=1, le=200),
    documents: DocumentService = Depends(get_documents),
) -> SearchResponse:
    records = documents.search(q, limit=limit)
    return SearchResponse(query=q, results=[document_to_response(r) for r in records])


@router.put(
    "/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload(
    request: Request,
    name: str,
    path: Optional[str] = None,
    documents: DocumentService = Depends(get_documents),
) -> DocumentResponse:
    """Upload the raw request body as a file named `name` into `path`."""
    data = await request.body()
    mime_type = (request.headers.get("content-type") or "").split(";")[0].strip()
    if not mime_type or mime_type == DEFAULT_MIME:
        mime_type = guess_mime(name)
    record = await run_in_threadpool(documents.upload, path, name, data, mime_type)
    return document_to_response(record)


@router.delete("/delete", response_model=MessageResponse)
def delete(
    path: str,
    documents: DocumentService = Depends(get_documents),
) -> MessageResponse:
    record = documents.delete(path)
    return MessageResponse(message=f"Deleted {record.path}")


@router.put("/rename", response_model=DocumentResponse)
def rename(
    body: RenameRequest,
    documents: DocumentService = Depends(get_documents),
) -> DocumentResponse:
    return document_to_response(documents.rename(body.path, body.new_name))


@router.get("/download")
def download(
    path: str,
    documents: DocumentService = Depends(get_documents),
) -> RedirectResponse:
    """Redirect to the provider's direct download URL."""
    return RedirectResponse(documents.download_url(path), status_code=status.HTTP_302_FOUND)
