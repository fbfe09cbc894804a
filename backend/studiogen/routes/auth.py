"""
StudioGen Backend - Authentication Routes
===========================================

What:  /api/auth endpoints: signup, login (password and Google), token
       refresh, logout, profile and password management.
How:   Thin handlers; AuthService holds the rules. Errors are raised as
       StudioGenError subclasses and rendered by the global handlers.

Session model:
    access token  (15 min, Bearer header)  ── expires ──▶ POST /refresh
    refresh token (7 days, stored by hash) ── rotated on every refresh,
                                              revoked by logout / password change
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.config import settings
from studiogen.database import get_db_session
from studiogen.dependencies import get_client_info, get_current_user
from studiogen.models.user import User
from studiogen.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    GoogleLoginRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenPairResponse,
    UpdateProfileRequest,
    UserProfileResponse,
    UserResponse,
)
from studiogen.schemas.common import DataResponse, ErrorResponse, MessageResponse
from studiogen.services.auth_service import AuthResult, auth_service
from studiogen.utils import ClientInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists, a password reset link has been sent."

_auth_errors = {
    401: {"description": "Invalid credentials or token", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
}


def _auth_response(result: AuthResult) -> DataResponse[AuthResponse]:
    return DataResponse(
        data=AuthResponse(
            user=UserResponse.model_validate(result.user),
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        )
    )


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=DataResponse[AuthResponse],
    responses={
        400: {"description": "Invalid identifier, password or name", "model": ErrorResponse},
        409: {"description": "Email or phone already registered", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Create an account with email or phone",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> DataResponse[AuthResponse]:
    result = await auth_service.signup(db, body, client)
    return _auth_response(result)


@router.post(
    "/login",
    response_model=DataResponse[AuthResponse],
    responses={
        **_auth_errors,
        423: {"description": "Account temporarily locked", "model": ErrorResponse},
    },
    summary="Log in with email/phone and password",
    description=(
        f"After {settings.max_login_attempts} consecutive wrong passwords the account "
        f"is locked for {settings.lockout_minutes} minutes."
    ),
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> DataResponse[AuthResponse]:
    result = await auth_service.login(db, body, client)
    return _auth_response(result)


@router.post(
    "/google",
    response_model=DataResponse[AuthResponse],
    responses=_auth_errors,
    summary="Log in or sign up with a Google ID token",
)
async def google_login(
    body: GoogleLoginRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> DataResponse[AuthResponse]:
    result = await auth_service.google_login(db, body.credential, client)
    return _auth_response(result)


@router.post(
    "/refresh",
    response_model=DataResponse[TokenPairResponse],
    responses=_auth_errors,
    summary="Exchange a refresh token for a new token pair",
)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> DataResponse[TokenPairResponse]:
    """The presented refresh token is consumed; reuse fails with 401."""
    tokens = await auth_service.refresh(db, body.refresh_token, client)
    return DataResponse(
        data=TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses=_auth_errors,
    summary="Revoke one refresh token",
)
async def logout(
    body: LogoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> MessageResponse:
    await auth_service.logout(db, user, body.refresh_token, client)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/logout-all",
    response_model=MessageResponse,
    responses=_auth_errors,
    summary="Revoke every refresh token of the user",
)
async def logout_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> MessageResponse:
    await auth_service.logout_all(db, user, client)
    return MessageResponse(message="Logged out from all devices")


@router.get(
    "/me",
    response_model=DataResponse[UserProfileResponse],
    responses=_auth_errors,
    summary="Current user's profile",
)
async def get_me(user: User = Depends(get_current_user)) -> DataResponse[UserProfileResponse]:
    return DataResponse(data=UserProfileResponse.model_validate(user))


@router.patch(
    "/me",
    response_model=DataResponse[UserProfileResponse],
    responses={
        **_auth_errors,
        400: {"description": "Invalid field value", "model": ErrorResponse},
        409: {"description": "Phone number already in use", "model": ErrorResponse},
    },
    summary="Update name, phone, date of birth or avatar",
)
async def update_me(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> DataResponse[UserProfileResponse]:
    """Only fields present in the body change; an empty string clears a field."""
    updated = await auth_service.update_profile(db, user, body, client)
    return DataResponse(data=UserProfileResponse.model_validate(updated))


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={
        **_auth_errors,
        400: {"description": "Weak password or OAuth-only account", "model": ErrorResponse},
    },
    summary="Change password and sign out everywhere",
)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> MessageResponse:
    await auth_service.change_password(db, user, body, client)
    return MessageResponse(message="Password changed successfully. Please log in again.")


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
    responses={429: {"description": "Rate limit exceeded", "model": ErrorResponse}},
    summary="Request a password reset token",
    description=(
        "Always answers with the same message so the endpoint cannot be used to "
        "discover registered emails. In development the token is returned as resetToken."
    ),
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> ForgotPasswordResponse:
    raw_token = await auth_service.request_password_reset(db, body.email, client)

    # No mail delivery yet: expose the token to local frontends only
    reset_token = raw_token if settings.environment == "development" else None
    return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE, reset_token=reset_token)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "Invalid or expired token, or weak password", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Set a new password with a reset token",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
    client: ClientInfo = Depends(get_client_info),
) -> MessageResponse:
    await auth_service.reset_password(db, body.token, body.new_password, client)
    return MessageResponse(message="Password reset successfully. Please log in with your new password.")
