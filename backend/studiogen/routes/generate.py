"""
StudioGen Backend - Generation Routes
=======================================

What:  Authenticated proxy to the image model for the studio UI.
Why:   The Gemini API key never reaches the browser, and every call is
       charged against the user's credits.

    ┌──────────────────────────────┬─────────┬────────────────────────────┐
    │ POST /remove-background      │  5 cr   │ product cut-out (PNG)      │
    │ POST /studio-image           │ 10/20 cr│ product placed in a scene  │
    │ POST /unified-background     │ 15 cr   │ brand background, no image │
    │ POST /suggest-colors         │  free   │ 5 text colors as JSON      │
    │ GET  /credits                │    -    │ current balance            │
    └──────────────────────────────┴─────────┴────────────────────────────┘

A failed model call raises after the deduction; the request transaction
rolls back and the credits are not spent.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.database import get_db_session
from studiogen.dependencies import get_current_user
from studiogen.models.user import User
from studiogen.schemas.common import DataResponse, ErrorResponse
from studiogen.schemas.generate import (
    ColorSuggestions,
    CreditsResponse,
    ImageResult,
    RemoveBackgroundRequest,
    StudioImageRequest,
    SuggestColorsRequest,
    UnifiedBackgroundRequest,
)
from studiogen.services.credit_service import get_balance
from studiogen.services.generation_service import generation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/generate", tags=["Generate"])

_generation_errors = {
    400: {"description": "Invalid or unsupported image", "model": ErrorResponse},
    401: {"description": "Missing or invalid access token", "model": ErrorResponse},
    402: {"description": "Insufficient credits", "model": ErrorResponse},
    429: {"description": "Generation rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Model returned no usable result", "model": ErrorResponse},
    503: {"description": "AI service unavailable", "model": ErrorResponse},
}


@router.post(
    "/remove-background",
    response_model=DataResponse[ImageResult],
    responses=_generation_errors,
    summary="Remove the background of a product photo",
)
async def remove_background(
    body: RemoveBackgroundRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ImageResult]:
    image_url = await generation_service.remove_background(db, user.id, body)
    return DataResponse(data=ImageResult(image_url=image_url))


@router.post(
    "/studio-image",
    response_model=DataResponse[ImageResult],
    responses=_generation_errors,
    summary="Compose the product into a studio scene",
    description="Premium quality costs 20 credits, every other quality 10.",
)
async def studio_image(
    body: StudioImageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ImageResult]:
    image_url = await generation_service.studio_image(db, user.id, body)
    return DataResponse(data=ImageResult(image_url=image_url))


@router.post(
    "/unified-background",
    response_model=DataResponse[ImageResult],
    responses=_generation_errors,
    summary="Generate a 9:16 branded background",
)
async def unified_background(
    body: UnifiedBackgroundRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ImageResult]:
    image_url = await generation_service.unified_background(db, user.id, body)
    return DataResponse(data=ImageResult(image_url=image_url))


@router.post(
    "/suggest-colors",
    response_model=DataResponse[ColorSuggestions],
    responses=_generation_errors,
    summary="Suggest text colors for an image",
)
async def suggest_colors(
    body: SuggestColorsRequest,
    user: User = Depends(get_current_user),
) -> DataResponse[ColorSuggestions]:
    colors = await generation_service.suggest_colors(body)
    return DataResponse(data=ColorSuggestions(colors=colors))


@router.get(
    "/credits",
    response_model=DataResponse[CreditsResponse],
    responses={401: {"description": "Missing or invalid access token", "model": ErrorResponse}},
    summary="Current credit balance",
)
async def get_credits(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[CreditsResponse]:
    credits = await get_balance(db, user.id)
    return DataResponse(data=CreditsResponse(credits=credits))
