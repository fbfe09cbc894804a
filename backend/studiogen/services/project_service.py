"""
StudioGen Backend - Project Service (Business Logic)
======================================================

What:  CRUD for projects and the images saved into them, scoped to the owner.
How:   Every lookup filters on (id, user_id); a project owned by someone else
       is indistinguishable from a missing one (404).
Who:   Called by the /api/projects route handlers.

Image storage:
    imageUrl values that are data: URLs are decoded, validated and written to
    STORAGE_ROOT; the row then stores the relative path and a /api/files/ URL.
    Anything else (an https URL) is stored as given. Deleting a project or an
    image returns the stored paths so the route can remove the files in a
    background task after the response is sent.
"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.exceptions import NotFoundError
from studiogen.models.project import Project, ProjectImage
from studiogen.schemas.project import (
    AddImageRequest,
    CreateProjectRequest,
    PreviewImage,
    ProjectDetail,
    ProjectImageResponse,
    ProjectInfo,
    ProjectSummary,
    UpdateProjectRequest,
)
from studiogen.services.file_service import file_service, is_data_url
from studiogen.utils import to_millis, utc_now

logger = logging.getLogger(__name__)

PREVIEW_IMAGE_COUNT = 4


def parse_id(value: str, resource: str) -> uuid.UUID:
    """Malformed ids are reported as missing resources, not validation errors."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(resource, str(value))


def _image_response(image: ProjectImage) -> ProjectImageResponse:
    return ProjectImageResponse(
        id=image.id,
        image_url=image.image_url,
        prompt=image.prompt,
        settings=image.settings,
        created_at=to_millis(image.created_at),
    )


def _project_info(project: Project) -> ProjectInfo:
    return ProjectInfo(
        id=project.id,
        name=project.name,
        created_at=to_millis(project.created_at),
        updated_at=to_millis(project.updated_at),
    )


class ProjectService:
    """Stateless; receives the request's session on every call."""

    async def _get_owned(self, db: AsyncSession, user_id: uuid.UUID, project_id: str) -> Project:
        pid = parse_id(project_id, "project")
        result = await db.execute(
            select(Project).where(Project.id == pid, Project.user_id == user_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def _images_of(self, db: AsyncSession, project_id: uuid.UUID) -> List[ProjectImage]:
        result = await db.execute(
            select(ProjectImage)
            .where(ProjectImage.project_id == project_id)
            .order_by(ProjectImage.created_at.desc(), ProjectImage.id.desc())
        )
        return list(result.scalars().all())

    # ── Projects ──────────────────────────────────────────────────────────
    async def list_projects(self, db: AsyncSession, user_id: uuid.UUID) -> List[ProjectSummary]:
        """
        The user's projects, most recently updated first.

        Query plan (3 queries regardless of project count):
            1. projects of the user ordered by updated_at DESC
            2. image counts grouped by project
            3. the newest PREVIEW_IMAGE_COUNT images per project (ROW_NUMBER window)
        """
        result = await db.execute(
            select(Project)
            .where(Project.user_id == user_id)
            .order_by(Project.updated_at.desc(), Project.created_at.desc())
        )
        projects = list(result.scalars().all())
        if not projects:
            return []

        project_ids = [p.id for p in projects]

        count_rows = await db.execute(
            select(ProjectImage.project_id, func.count(ProjectImage.id))
            .where(ProjectImage.project_id.in_(project_ids))
            .group_by(ProjectImage.project_id)
        )
        counts: Dict[uuid.UUID, int] = {pid: count for pid, count in count_rows.all()}

        ranked = (
            select(
                ProjectImage.id,
                ProjectImage.project_id,
                ProjectImage.image_url,
                func.row_number()
                .over(
                    partition_by=ProjectImage.project_id,
                    order_by=(ProjectImage.created_at.desc(), ProjectImage.id.desc()),
                )
                .label("position"),
            )
            .where(ProjectImage.project_id.in_(project_ids))
            .subquery()
        )
        preview_rows = await db.execute(
            select(ranked.c.id, ranked.c.project_id, ranked.c.image_url)
            .where(ranked.c.position <= PREVIEW_IMAGE_COUNT)
            .order_by(ranked.c.project_id, ranked.c.position)
        )
        previews: Dict[uuid.UUID, List[PreviewImage]] = defaultdict(list)
        for image_id, project_id, image_url in preview_rows.all():
            previews[project_id].append(PreviewImage(id=image_id, image_url=image_url))

        return [
            ProjectSummary(
                **_project_info(project).model_dump(),
                image_count=counts.get(project.id, 0),
                preview_images=previews.get(project.id, []),
            )
            for project in projects
        ]

    async def create_project(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        data: CreateProjectRequest,
    ) -> ProjectDetail:
        project = Project(user_id=user_id, name=data.name)
        db.add(project)
        await db.flush()
        logger.info("Project created: %s (user=%s)", project.id, user_id)
        return ProjectDetail(**_project_info(project).model_dump(), images=[])

    async def get_project(self, db: AsyncSession, user_id: uuid.UUID, project_id: str) -> ProjectDetail:
        project = await self._get_owned(db, user_id, project_id)
        images = await self._images_of(db, project.id)
        return ProjectDetail(
            **_project_info(project).model_dump(),
            images=[_image_response(image) for image in images],
        )

    async def update_project(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        project_id: str,
        data: UpdateProjectRequest,
    ) -> ProjectInfo:
        project = await self._get_owned(db, user_id, project_id)
        if data.name:
            project.name = data.name
            project.updated_at = utc_now()
            await db.flush()
        return _project_info(project)

    async def delete_project(self, db: AsyncSession, user_id: uuid.UUID, project_id: str) -> List[str]:
        """Delete the project and its images. Returns stored file paths to clean up."""
        project = await self._get_owned(db, user_id, project_id)
        images = await self._images_of(db, project.id)
        stored_paths = [image.image_path for image in images if image.image_path]

        await db.delete(project)
        await db.flush()
        logger.info("Project deleted: %s (%d images)", project.id, len(images))
        return stored_paths

    # ── Images ────────────────────────────────────────────────────────────
    async def add_image(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        project_id: str,
        data: AddImageRequest,
    ) -> ProjectImageResponse:
        """
        Save an image into a project.

        data: URLs are written to storage first; if the insert then fails the
        file is removed again before the error propagates.
        """
        project = await self._get_owned(db, user_id, project_id)

        image_path: Optional[str] = None
        image_url = data.image_url
        if is_data_url(data.image_url):
            image_path, image_url = await file_service.save_data_url(data.image_url)

        image = ProjectImage(
            project_id=project.id,
            image_url=image_url,
            image_path=image_path,
            prompt=data.prompt or "",
            settings=data.settings,
        )
        db.add(image)
        project.updated_at = utc_now()
        try:
            await db.flush()
        except Exception:
            if image_path:
                await file_service.cleanup_file(image_path)
            raise

        logger.info("Image %s added to project %s", image.id, project.id)
        return _image_response(image)

    async def delete_image(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        project_id: str,
        image_id: str,
    ) -> Optional[str]:
        """Delete one image. Returns its stored path (if any) for cleanup."""
        project = await self._get_owned(db, user_id, project_id)
        iid = parse_id(image_id, "image")
        result = await db.execute(
            select(ProjectImage).where(
                ProjectImage.id == iid,
                ProjectImage.project_id == project.id,
            )
        )
        image = result.scalar_one_or_none()
        if image is None:
            raise NotFoundError("image", image_id)

        stored_path = image.image_path
        await db.delete(image)
        await db.flush()
        return stored_path


project_service = ProjectService()
