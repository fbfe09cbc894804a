"""
StudioGen Backend - Project and Project Image Models
=====================================================

What:  ORM models for user projects and the generated images saved into them.
Who:   Used by ProjectService; Alembic reads them for migrations.

Query Patterns:
    - List a user's projects, most recently touched first
      → idx_projects_user_updated (user_id, updated_at)
    - Images of a project, newest first (full list or 4-image preview)
      → idx_project_images_project_created (project_id, created_at)
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studiogen.database import Base
from studiogen.utils import utc_now


class Project(Base):
    """A named collection of generated images owned by one user."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    # Bumped on rename and whenever an image is added
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped["User"] = relationship(back_populates="projects")  # noqa: F821
    images: Mapped[List["ProjectImage"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_projects_user_updated", "user_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}')>"


class ProjectImage(Base):
    """
    An image saved into a project.

    image_url is what clients render. For images uploaded as data URLs the
    bytes live on disk and image_path holds the path relative to STORAGE_ROOT
    (image_url then points at /api/files/<image_path>). External URLs are kept
    as given and image_path stays NULL.
    """

    __tablename__ = "project_images"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    image_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default=text("''"))
    settings: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    project: Mapped[Project] = relationship(back_populates="images")

    __table_args__ = (
        Index("idx_project_images_project_created", "project_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ProjectImage(id={self.id}, project_id={self.project_id})>"
