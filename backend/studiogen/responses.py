"""
StudioGen Backend - Error Response Builder
============================================

Renders the JSON error envelope. Shared by the global exception handlers and
the request logging middleware, which answers unhandled exceptions itself
while the request ID is still bound.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from studiogen.middleware.request_id import request_id_var
from studiogen.schemas.common import ErrorResponse

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred. Please try again or contact support."


def error_response(
    status_code: int,
    error: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        request_id=request_id_var.get("") or None,
        **extra,
    ).model_dump(exclude_none=True, by_alias=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def internal_error_response() -> JSONResponse:
    return error_response(500, "internal_server_error", INTERNAL_ERROR_MESSAGE)
