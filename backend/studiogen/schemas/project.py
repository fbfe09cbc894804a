"""
StudioGen Backend - Project Schemas
=====================================

Timestamps in project responses are epoch milliseconds, the format the
frontend's project gallery sorts and formats directly.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from studiogen.schemas.common import CamelModel


class CreateProjectRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)

    # Length limits apply to the stripped name
    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class UpdateProjectRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class AddImageRequest(CamelModel):
    image_url: str = Field(min_length=1, description="data: URL or external image URL")
    prompt: str = Field(default="", max_length=1000)
    settings: Optional[Dict[str, Any]] = None


class PreviewImage(CamelModel):
    id: uuid.UUID
    image_url: str


class ProjectImageResponse(CamelModel):
    id: uuid.UUID
    image_url: str
    prompt: str
    settings: Optional[Dict[str, Any]] = None
    created_at: int


class ProjectInfo(CamelModel):
    id: uuid.UUID
    name: str
    created_at: int
    updated_at: int


class ProjectSummary(ProjectInfo):
    """List view: counts and up to four newest images as a preview."""

    image_count: int
    preview_images: List[PreviewImage]


class ProjectDetail(ProjectInfo):
    images: List[ProjectImageResponse]
