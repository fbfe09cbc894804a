"""
StudioGen Backend - Generation Service (Business Logic Orchestrator)
=====================================================================

What:  Credit-checked proxy between the studio endpoints and the image model.
How:   Validate input image → deduct credits → build prompt → call the model
       → check the result.

Orchestration Flow (POST /api/generate/studio-image):
    ┌──────────┐   ┌──────────────┐   ┌────────────┐   ┌─────────────┐
    │ Decode & │──▶│ Deduct       │──▶│ Build      │──▶│ Gemini call │
    │ validate │   │ credits      │   │ prompt     │   │ (retry/CB)  │
    └──────────┘   └──────────────┘   └────────────┘   └─────────────┘

    On failure after the deduction (model error, empty result) the exception
    propagates, the request transaction rolls back and the credits return.
"""

import json
import logging
import re
import uuid
from typing import List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.config import settings
from studiogen.exceptions import GenerationError
from studiogen.schemas.generate import (
    ColorOption,
    ImagePayload,
    StudioImageRequest,
    UnifiedBackgroundRequest,
)
from studiogen.services import prompt_builder
from studiogen.services.credit_service import deduct_credits, studio_image_cost
from studiogen.services.file_service import file_service
from studiogen.services.gemini_service import gemini_service
from studiogen.services.llm_base import ImageInput, ImageModelService

logger = logging.getLogger(__name__)

JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

_colors_adapter = TypeAdapter(List[ColorOption])


def parse_color_suggestions(raw: str) -> List[ColorOption]:
    """
    Pull the first [...] block out of the model's answer and validate it.

    Raises:
        GenerationError("Failed to parse color suggestions")
    """
    match = JSON_ARRAY_PATTERN.search(raw)
    if not match:
        raise GenerationError("Failed to parse color suggestions")
    try:
        return _colors_adapter.validate_python(json.loads(match.group(0)))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning("Unparsable color suggestions: %s", e)
        raise GenerationError("Failed to parse color suggestions")


class GenerationService:
    def __init__(self, model: Optional[ImageModelService] = None):
        self._model = model

    @property
    def model(self) -> ImageModelService:
        return self._model or gemini_service

    def _input_image(self, payload: ImagePayload) -> ImageInput:
        image = file_service.decode_image(payload.base64_image_data, payload.mime_type)
        return ImageInput(data=image.data, mime_type=image.mime_type)

    async def remove_background(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        payload: ImagePayload,
    ) -> str:
        image = self._input_image(payload)
        await deduct_credits(db, user_id, settings.credit_cost_remove_background)

        result = await self.model.generate_image(prompt_builder.background_removal_prompt(), image)
        if not result:
            raise GenerationError("Failed to process image")
        logger.info("Background removed for user=%s", user_id)
        return result

    async def studio_image(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        request: StudioImageRequest,
    ) -> str:
        image = self._input_image(request)
        await deduct_credits(db, user_id, studio_image_cost(request.quality))

        prompt = prompt_builder.studio_prompt(request)
        result = await self.model.generate_image(prompt, image)
        if not result:
            raise GenerationError("Failed to generate image")
        logger.info(
            "Studio image generated for user=%s (industry=%s, quality=%s, format=%s)",
            user_id,
            request.industry.id,
            request.quality.id,
            request.format.value,
        )
        return result

    async def unified_background(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        request: UnifiedBackgroundRequest,
    ) -> str:
        await deduct_credits(db, user_id, settings.credit_cost_unified_background)

        prompt = prompt_builder.unified_background_prompt(request.settings)
        result = await self.model.generate_image(prompt)
        if not result:
            raise GenerationError("Failed to generate background")
        return result

    async def suggest_colors(self, payload: ImagePayload) -> List[ColorOption]:
        """Free: no credits are taken."""
        image = self._input_image(payload)
        raw = await self.model.generate_text(
            prompt_builder.color_suggestion_prompt(),
            image,
            response_mime_type="application/json",
        )
        if not raw:
            raise GenerationError("Failed to analyze image")
        return parse_color_suggestions(raw)


generation_service = GenerationService()
