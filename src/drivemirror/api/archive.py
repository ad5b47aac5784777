"""Zip archive routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from drivemirror.api.deps import get_archiver
from drivemirror.archive import ArchiveBuilder
from drivemirror.models import ArchiveResult
from drivemirror.schemas import ZipFilesRequest, ZipFolderRequest

router = APIRouter(prefix="/api/zip", tags=["archive"])


@router.post("/files")
def zip_files(
    body: ZipFilesRequest,
    archiver: ArchiveBuilder = Depends(get_archiver),
) -> Response:
    if not body.file_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files selected",
        )
    return _archive_response(archiver.build_from_ids(body.file_ids, body.zip_name))


@router.post("/folder")
def zip_folder(
    body: ZipFolderRequest,
    archiver: ArchiveBuilder = Depends(get_archiver),
) -> Response:
    return _archive_response(archiver.build_from_folder(body.folder_id, body.folder_name))


def _archive_response(result: ArchiveResult) -> Response:
    return Response(
        content=result.data,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Archive-Entries": str(len(result.entries)),
            "X-Archive-Omitted": str(len(result.omitted)),
        },
    )
