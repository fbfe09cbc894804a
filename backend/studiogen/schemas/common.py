"""
StudioGen Backend - Shared Response Envelopes
===============================================

What:  Base model and response wrappers shared by every router.
How:   CamelModel turns snake_case attributes into camelCase JSON keys (the
       frontend contract) while still accepting snake_case on input.
       Responses use the envelope {"success": true, "data": ...}; action
       endpoints use {"success": true, "message": ...}.
"""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for request/response bodies exchanged with the frontend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(BaseModel, Generic[T]):
    """Success envelope carrying a payload."""

    success: bool = True
    data: T


class MessageResponse(BaseModel):
    """Success envelope for endpoints that only report an outcome."""

    success: bool = True
    message: str


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Error body returned by every global exception handler.

    Example:
        {
            "success": false,
            "error": "validation_error",
            "message": "Validation failed",
            "details": [{"field": "password", "message": "Password must contain at least one number"}],
            "request_id": "a1b2c3d4"
        }
    """

    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Any] = Field(default=None, description="Field errors or extra context")
    code: Optional[str] = Field(default=None, description="Fine-grained hint, e.g. TOKEN_EXPIRED")
    locked_until: Optional[str] = Field(
        default=None,
        serialization_alias="lockedUntil",
        description="ISO timestamp when a locked account opens again",
    )
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class ValidationErrorResponse(ErrorResponse):
    details: Optional[List[FieldError]] = None


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer checks."""

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
