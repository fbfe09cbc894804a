"""
StudioGen Backend - Stored File Route
=======================================

Serves images saved into projects (the /api/files/... URLs returned by the
project endpoints). No auth: the URLs are used directly in <img> tags, and
the random UUID file names are the only handle to a file.
"""

import mimetypes

from fastapi import APIRouter
from fastapi.responses import FileResponse

from studiogen.schemas.common import ErrorResponse
from studiogen.services.file_service import file_service

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a stored project image",
)
async def serve_file(file_path: str) -> FileResponse:
    # resolve_path rejects anything outside STORAGE_ROOT with a 404
    full_path = file_service.resolve_path(file_path)
    media_type, _ = mimetypes.guess_type(full_path.name)
    return FileResponse(
        path=full_path,
        media_type=media_type or "application/octet-stream",
        # Stored files are never rewritten; a new image gets a new name
        headers={"Cache-Control": "public, max-age=86400, immutable"},
    )
