"""
StudioGen Backend - Project Routes
====================================

What:  /api/projects CRUD plus saving generated images into a project.
Who:   The frontend's "My Projects" gallery and the "save to project" action.

Every route requires a Bearer token; projects are only visible to their owner.
Stored image files are removed in BackgroundTasks once the delete has been
answered, so a slow disk never delays the response.
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.database import get_db_session
from studiogen.dependencies import get_current_user
from studiogen.models.user import User
from studiogen.schemas.common import DataResponse, ErrorResponse, MessageResponse
from studiogen.schemas.project import (
    AddImageRequest,
    CreateProjectRequest,
    ProjectDetail,
    ProjectImageResponse,
    ProjectInfo,
    ProjectSummary,
    UpdateProjectRequest,
)
from studiogen.services.file_service import file_service
from studiogen.services.project_service import project_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

_not_found = {
    401: {"description": "Missing or invalid access token", "model": ErrorResponse},
    404: {"description": "Project not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=DataResponse[List[ProjectSummary]],
    summary="List the user's projects",
    description="Newest activity first, each with its image count and up to four preview images.",
)
async def list_projects(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[ProjectSummary]]:
    projects = await project_service.list_projects(db, user.id)
    return DataResponse(data=projects)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=DataResponse[ProjectDetail],
    summary="Create a project",
)
async def create_project(
    body: CreateProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ProjectDetail]:
    project = await project_service.create_project(db, user.id, body)
    return DataResponse(data=project)


@router.get(
    "/{project_id}",
    response_model=DataResponse[ProjectDetail],
    responses=_not_found,
    summary="Get a project with all of its images",
)
async def get_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ProjectDetail]:
    project = await project_service.get_project(db, user.id, project_id)
    return DataResponse(data=project)


@router.patch(
    "/{project_id}",
    response_model=DataResponse[ProjectInfo],
    responses=_not_found,
    summary="Rename a project",
)
async def update_project(
    project_id: str,
    body: UpdateProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ProjectInfo]:
    project = await project_service.update_project(db, user.id, project_id, body)
    return DataResponse(data=project)


@router.delete(
    "/{project_id}",
    response_model=MessageResponse,
    responses=_not_found,
    summary="Delete a project and its images",
)
async def delete_project(
    project_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    stored_paths = await project_service.delete_project(db, user.id, project_id)
    for path in stored_paths:
        background_tasks.add_task(file_service.cleanup_file, path)
    return MessageResponse(message="Project deleted successfully")


@router.post(
    "/{project_id}/images",
    status_code=status.HTTP_201_CREATED,
    response_model=DataResponse[ProjectImageResponse],
    responses={
        **_not_found,
        400: {"description": "Invalid or oversized image data", "model": ErrorResponse},
    },
    summary="Save an image into a project",
    description=(
        "imageUrl may be a data: URL (decoded, validated and stored; the response "
        "carries its /api/files/ URL) or any other image URL, stored as given."
    ),
)
async def add_image(
    project_id: str,
    body: AddImageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ProjectImageResponse]:
    image = await project_service.add_image(db, user.id, project_id, body)
    return DataResponse(data=image)


@router.delete(
    "/{project_id}/images/{image_id}",
    response_model=MessageResponse,
    responses={
        401: {"description": "Missing or invalid access token", "model": ErrorResponse},
        404: {"description": "Project or image not found", "model": ErrorResponse},
    },
    summary="Delete one image from a project",
)
async def delete_image(
    project_id: str,
    image_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    stored_path = await project_service.delete_image(db, user.id, project_id, image_id)
    if stored_path:
        background_tasks.add_task(file_service.cleanup_file, stored_path)
    return MessageResponse(message="Image deleted successfully")
