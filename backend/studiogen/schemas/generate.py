"""
StudioGen Backend - Generation Schemas
========================================

Request bodies mirror the option objects the studio UI already holds
(industry, quality, format, background style), so the frontend can forward
its current selection unchanged.
"""

from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from studiogen.schemas.common import CamelModel

FormatValue = Literal["16:9", "9:16", "1:1"]


class ImagePayload(CamelModel):
    base64_image_data: str = Field(min_length=1, description="Raw base64 or data: URL")
    mime_type: str = Field(min_length=1)


class RemoveBackgroundRequest(ImagePayload):
    pass


class SuggestColorsRequest(ImagePayload):
    pass


class Industry(CamelModel):
    id: str
    name: str


class Quality(CamelModel):
    id: str
    name: str
    description: str


class GenerationFormat(CamelModel):
    id: Literal["banner", "poster", "square"]
    name: str
    class_name: str
    value: FormatValue


class BackgroundStyle(CamelModel):
    id: str
    name: str
    prompt: str
    preview_class: str


class StudioImageRequest(ImagePayload):
    prompt: str = Field(min_length=1, max_length=1000)
    industry: Industry
    quality: Quality
    format: GenerationFormat
    background: BackgroundStyle


class BrandModel(CamelModel):
    id: str
    name: str
    prompt: str


class BrandColors(CamelModel):
    primary: str
    secondary: str


class BrandSettings(CamelModel):
    logo: Optional[str] = None
    industry: Industry
    model: BrandModel
    colors: BrandColors
    prompt: str


class UnifiedBackgroundRequest(CamelModel):
    settings: BrandSettings


# ── Responses ─────────────────────────────────────────────────────────────


class ColorOption(CamelModel):
    id: str
    name: str
    value: str
    is_gradient: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        # The model sometimes numbers its suggestions
        if isinstance(v, int):
            return str(v)
        return v


class ImageResult(CamelModel):
    image_url: str = Field(description="data:<mime>;base64,<data>")


class ColorSuggestions(CamelModel):
    colors: List[ColorOption]


class CreditsResponse(CamelModel):
    credits: int
