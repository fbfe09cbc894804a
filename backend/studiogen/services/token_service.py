"""
StudioGen Backend - JWT Token Service
=======================================

What:  Issues and verifies the HS256 access/refresh token pair.
How:   PyJWT with separate secrets per token type. Every token carries a
       random jti so two tokens minted in the same second still differ (the
       refresh token hash is a unique column).
Who:   AuthService issues tokens; the auth dependency verifies access tokens.

Claims:
    sub    user id (UUID string)
    email  access tokens only, when the account has one
    type   "access" | "refresh"
    iat    issued-at, exp expiry, jti unique token id
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt

from studiogen.config import settings
from studiogen.exceptions import AuthenticationError
from studiogen.utils import utc_now

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


def hash_token(token: str) -> str:
    """SHA-256 hex digest; refresh and password reset tokens are stored this way."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenService:
    """Stateless JWT helper. Persistence of refresh tokens lives in AuthService."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    # ── Issuing ───────────────────────────────────────────────────────────
    def _encode(self, claims: Dict[str, Any], secret: str, ttl: timedelta, now: datetime) -> str:
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def create_access_token(self, user_id: uuid.UUID, email: Optional[str] = None) -> str:
        claims: Dict[str, Any] = {"sub": str(user_id), "type": ACCESS_TOKEN_TYPE}
        if email:
            claims["email"] = email
        return self._encode(claims, self.access_secret, self.access_ttl, utc_now())

    def create_refresh_token(self, user_id: uuid.UUID) -> str:
        claims = {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE}
        return self._encode(claims, self.refresh_secret, self.refresh_ttl, utc_now())

    def issue_pair(self, user_id: uuid.UUID, email: Optional[str] = None) -> TokenPair:
        return TokenPair(
            access_token=self.create_access_token(user_id, email),
            refresh_token=self.create_refresh_token(user_id),
            refresh_expires_at=utc_now() + self.refresh_ttl,
        )

    # ── Verification ──────────────────────────────────────────────────────
    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """
        Verify an access token and return its claims.

        Raises:
            AuthenticationError("Token expired", code="TOKEN_EXPIRED")
            AuthenticationError("Invalid token type")
            AuthenticationError("Invalid token")
        """
        try:
            payload = jwt.decode(
                token,
                self.access_secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired", code="TOKEN_EXPIRED")
        except jwt.PyJWTError as e:
            logger.debug("Access token rejected: %s", e)
            raise AuthenticationError("Invalid token")

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError("Invalid token type")
        return payload

    def decode_refresh_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify a refresh token's signature, expiry and type.

        Returns the claims, or None when the token is not a valid refresh
        token. Whether it is still honoured is decided by the stored hash.
        """
        try:
            payload = jwt.decode(
                token,
                self.refresh_secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "type"]},
            )
        except jwt.PyJWTError as e:
            logger.debug("Refresh token rejected: %s", e)
            return None

        if payload.get("type") != REFRESH_TOKEN_TYPE:
            return None
        return payload


# ── Singleton Instance ────────────────────────────────────────────────────
token_service = TokenService(
    access_secret=settings.jwt_access_secret,
    refresh_secret=settings.jwt_refresh_secret,
    algorithm=settings.jwt_algorithm,
    access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
    refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
)
