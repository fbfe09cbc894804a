"""
StudioGen Backend - Shared Route Dependencies
===============================================

What:  FastAPI dependencies resolving the caller: the authenticated user and
       the client's IP / user agent.
How:   get_current_user reads `Authorization: Bearer <access token>`, verifies
       it and loads the user with the request's own session (FastAPI caches
       get_db_session per request, so routes see the same session).
"""

import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.database import get_db_session
from studiogen.exceptions import AuthenticationError
from studiogen.models.user import User
from studiogen.services.token_service import token_service
from studiogen.utils import ClientInfo

# auto_error=False: a missing header is reported in our error format, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False, description="Access token from /api/auth/login")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Raises:
        AuthenticationError: 401 "Access token required", "Token expired"
            (code TOKEN_EXPIRED), "Invalid token type", "Invalid token" or
            "User not found or inactive".
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    payload = token_service.decode_access_token(credentials.credentials)

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise AuthenticationError("Invalid token")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return user


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo.from_request(request)
