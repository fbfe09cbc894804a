"""
StudioGen Backend - Google ID Token Verification
==================================================

What:  Verifies the credential (ID token) produced by Google Identity Services
       on the frontend and returns its identity claims.
How:   The RS256 signature is checked against Google's published JWKS via
       PyJWT's PyJWKClient (keys are cached by the client). Audience, issuer,
       expiry and the presence of sub/email are then checked explicitly so
       every failure maps to one of two client messages.
Who:   Called by AuthService.google_login().

Signature verification can be switched off with GOOGLE_VERIFY_SIGNATURE=false
for local testing with hand-made tokens; claim checks still apply.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from studiogen.config import settings
from studiogen.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}

INVALID_CREDENTIAL = "Invalid Google credential"
EXPIRED_CREDENTIAL = "Google credential expired"


@dataclass(frozen=True)
class GoogleIdentity:
    sub: str
    email: str
    email_verified: bool = False
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleTokenVerifier:
    def __init__(
        self,
        client_id: str,
        certs_url: str,
        verify_signature: bool = True,
    ):
        self.client_id = client_id
        self.certs_url = certs_url
        self.verify_signature = verify_signature
        self._jwks_client: Optional[jwt.PyJWKClient] = None

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(self.certs_url)
        return self._jwks_client

    def _decode_verified(self, credential: str) -> Dict[str, Any]:
        # Blocking: may fetch Google's certificates over HTTP
        signing_key = self.jwks_client.get_signing_key_from_jwt(credential)
        return jwt.decode(
            credential,
            signing_key.key,
            algorithms=["RS256"],
            options={"verify_aud": False, "verify_exp": False},
        )

    async def _decode(self, credential: str) -> Dict[str, Any]:
        if self.verify_signature:
            return await asyncio.to_thread(self._decode_verified, credential)
        return jwt.decode(credential, options={"verify_signature": False})

    async def verify(self, credential: str) -> GoogleIdentity:
        """
        Raises:
            AuthenticationError("Google credential expired")
            AuthenticationError("Invalid Google credential")
        """
        try:
            payload = await self._decode(credential)
        except (jwt.PyJWTError, jwt.PyJWKClientError) as e:
            logger.warning("Google credential rejected: %s", e)
            raise AuthenticationError(INVALID_CREDENTIAL)

        if not payload.get("sub") or not payload.get("email"):
            logger.warning("Google credential missing sub or email")
            raise AuthenticationError(INVALID_CREDENTIAL)

        if not self.client_id or payload.get("aud") != self.client_id:
            logger.warning("Google credential audience mismatch")
            raise AuthenticationError(INVALID_CREDENTIAL)

        if payload.get("iss") not in GOOGLE_ISSUERS:
            logger.warning("Google credential issuer mismatch: %s", payload.get("iss"))
            raise AuthenticationError(INVALID_CREDENTIAL)

        try:
            expires_at = float(payload["exp"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Google credential has no usable exp claim")
            raise AuthenticationError(INVALID_CREDENTIAL)
        if expires_at < time.time():
            raise AuthenticationError(EXPIRED_CREDENTIAL)

        return GoogleIdentity(
            sub=str(payload["sub"]),
            email=str(payload["email"]).lower(),
            email_verified=bool(payload.get("email_verified", False)),
            name=payload.get("name"),
            picture=payload.get("picture"),
        )


google_verifier = GoogleTokenVerifier(
    client_id=settings.google_client_id,
    certs_url=settings.google_certs_url,
    verify_signature=settings.google_verify_signature,
)
