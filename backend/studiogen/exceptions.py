"""
StudioGen Backend - Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for different error scenarios.
How:   Each exception carries a user-facing message and an optional context
       dict (logged, and for client-fixable errors echoed as `details`).
       Global exception handlers (registered in main.py) translate them to
       JSON error responses with the matching HTTP status code.
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    StudioGenError (base)
    ├── ValidationError           → 400 Bad Request
    ├── AuthenticationError       → 401 Unauthorized
    ├── InsufficientCreditsError  → 402 Payment Required
    ├── NotFoundError             → 404 Not Found
    ├── ConflictError             → 409 Conflict
    ├── AccountLockedError        → 423 Locked
    ├── RateLimitExceededError    → 429 Too Many Requests
    ├── GenerationError           → 500 (model answered, but with nothing usable)
    ├── FileStorageError          → 500 Internal Server Error
    ├── DatabaseError             → 500 Internal Server Error
    ├── LLMServiceError           → 503 Service Unavailable (retry later)
    └── CircuitBreakerOpenError   → 503 Service Unavailable (circuit open)
"""

from datetime import datetime
from typing import Any, Dict, Optional


class StudioGenError(Exception):
    """
    Base exception for all StudioGen application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
        status_code / error_code: HTTP status and machine-readable code used
                  by the global handlers
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StudioGenError):
    """
    Raised when client input fails a business rule.

    Schema-level problems (missing fields, wrong types) are caught earlier by
    FastAPI and rendered with the same `validation_error` code.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(StudioGenError):
    """
    Raised when credentials or tokens are missing, invalid or expired.

    `code` is an optional machine-readable hint for clients, e.g.
    TOKEN_EXPIRED tells the frontend to call /api/auth/refresh instead of
    sending the user back to the login page.
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Authentication required",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.code = code


class InsufficientCreditsError(StudioGenError):
    """Raised when a user's credit balance cannot cover a generation call."""

    status_code = 402
    error_code = "insufficient_credits"

    def __init__(
        self,
        required: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["required"] = required
        super().__init__(message="Insufficient credits", context=ctx)
        self.required = required


class NotFoundError(StudioGenError):
    """
    Raised when a requested resource does not exist (or is not owned by the caller).

    SQLAlchemy returns None for missing records; services convert that into
    this exception so routes stay free of status-code logic.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(StudioGenError):
    """Raised when a create/update would duplicate a unique value (email, phone)."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccountLockedError(StudioGenError):
    """Raised on login while the account is inside its lockout window."""

    status_code = 423
    error_code = "account_locked"

    def __init__(
        self,
        locked_until: datetime,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["locked_until"] = locked_until.isoformat()
        super().__init__(
            message="Account is temporarily locked. Please try again later.",
            context=ctx,
        )
        self.locked_until = locked_until


class RateLimitExceededError(StudioGenError):
    """
    Raised when a client exceeds a rate limit.

    The rate limit middleware answers directly; this exception exists for
    code paths that enforce limits inside a request handler.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = (
                f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
            )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class GenerationError(StudioGenError):
    """
    Raised when the model call succeeded but produced nothing usable.

    Examples: no inline image part in the response, or color suggestions that
    are not a JSON array.
    """

    status_code = 500
    error_code = "generation_failed"

    def __init__(
        self,
        message: str = "Failed to process image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(StudioGenError):
    """
    Raised when file system operations fail (disk full, permission denied...).

    The client only sees a generic message; paths and OS errors go to the log.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(StudioGenError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the SQL-level
    details stay in server logs.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(StudioGenError):
    """
    Raised when the generative model (Gemini) fails after all retries.

    `retry_after` (seconds) is surfaced as a Retry-After header.
    """

    status_code = 503
    error_code = "llm_service_error"

    def __init__(
        self,
        message: str = "AI image service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(StudioGenError):
    """
    Raised when the circuit breaker around the model client is OPEN.

    State machine:
        CLOSED → (N consecutive failures) → OPEN
        OPEN → (recovery timeout elapsed) → HALF_OPEN (one trial call)
        HALF_OPEN → success → CLOSED, failure → OPEN
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
