"""
StudioGen Backend - Authentication Schemas
============================================

Request bodies for /api/auth/* and the user views returned by it.

Identifier rules:
    An identifier is either an email address (normalized to lower case) or a
    Vietnamese phone number: 0 or +84 followed by 9-10 digits.
"""

import re
import uuid
from datetime import date, datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AnyUrl,
    Field,
    TypeAdapter,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from studiogen.config import settings
from studiogen.schemas.common import CamelModel

PHONE_PATTERN = re.compile(r"^(0|\+84)[0-9]{9,10}$")

_date_adapter = TypeAdapter(date)
_datetime_adapter = TypeAdapter(datetime)
_url_adapter = TypeAdapter(AnyUrl)


# ── Shared validators ─────────────────────────────────────────────────────
def validate_password_strength(value: str) -> str:
    """Password policy shared by signup, change-password and reset-password."""
    min_length = settings.password_min_length
    if len(value) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    return value


def normalize_email(value: str) -> str:
    try:
        result = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Invalid email address")
    return result.normalized.lower()


def validate_phone(value: str) -> str:
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return value


def is_email_identifier(identifier: str) -> bool:
    return "@" in identifier


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class SignupRequest(CamelModel):
    identifier: str = Field(description="Email address or phone number")
    password: str
    full_name: str = Field(min_length=2, max_length=100)

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if is_email_identifier(v):
            return normalize_email(v)
        try:
            return validate_phone(v)
        except ValueError:
            raise ValueError("Must be a valid email address or phone number")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if len(stripped) < 2:
            raise ValueError("Name must be at least 2 characters")
        return stripped


class LoginRequest(CamelModel):
    identifier: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("identifier")
    @classmethod
    def normalize_identifier(cls, v: str) -> str:
        v = v.strip()
        return v.lower() if is_email_identifier(v) else v


class GoogleLoginRequest(CamelModel):
    credential: str = Field(min_length=1, description="Google Identity Services ID token")


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str, info: ValidationInfo) -> str:
        validate_password_strength(v)
        if info.data.get("current_password") == v:
            raise ValueError("New password must be different from current password")
        return v


class ForgotPasswordRequest(CamelModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UpdateProfileRequest(CamelModel):
    """
    Partial profile update.

    Only fields present in the request body are applied (model_fields_set);
    an empty string clears phone, dob or avatarUrl.
    """

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = None
    dob: Optional[str] = Field(default=None, description="ISO date or datetime")
    avatar_url: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return v
        return validate_phone(v)

    @field_validator("dob")
    @classmethod
    def validate_dob(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return v
        try:
            return _date_adapter.validate_python(v).isoformat()
        except PydanticValidationError:
            pass
        try:
            return _datetime_adapter.validate_python(v).date().isoformat()
        except PydanticValidationError:
            raise ValueError("Invalid date of birth")

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return v
        try:
            _url_adapter.validate_python(v)
        except PydanticValidationError:
            raise ValueError("Invalid URL")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(CamelModel):
    id: uuid.UUID
    email: Optional[str] = None
    phone: Optional[str] = None
    name: str
    avatar_url: Optional[str] = None
    dob: Optional[date] = None
    credits: int
    identifier_type: str


class UserProfileResponse(UserResponse):
    email_verified: bool
    phone_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str


class ForgotPasswordResponse(CamelModel):
    success: bool = True
    message: str
    # Only populated outside production, there is no mail delivery yet
    reset_token: Optional[str] = None
