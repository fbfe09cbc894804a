"""
StudioGen Backend - Authentication Service (Business Logic)
=============================================================

What:  Account lifecycle: signup, password and Google login, refresh token
       rotation, logout, profile edits and password change/reset.
How:   Composes TokenService, PasswordService, GoogleTokenVerifier and the
       audit log on top of the request's database session.
Who:   Called by the /api/auth route handlers.

Session model:
    ┌────────┐  login/signup   ┌──────────────────────────────┐
    │ Client │ ──────────────▶ │ access JWT (15 min)          │
    │        │ ◀────────────── │ refresh JWT (7 days, stored  │
    └────────┘                 │ server-side by SHA-256 hash) │
        │  /refresh            └──────────────────────────────┘
        └──▶ old refresh row deleted, new pair issued (rotation)

Failure paths that must survive the request rollback (failed-login counter,
lockout, audit entries for rejected logins, deletion of an expired refresh
token) are committed explicitly before the error is raised.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional
from urllib.parse import quote

from pydantic.alias_generators import to_camel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studiogen.config import settings
from studiogen.exceptions import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from studiogen.models.user import AuditAction, RefreshToken, User
from studiogen.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    UpdateProfileRequest,
    is_email_identifier,
)
from studiogen.services.audit_service import log_event
from studiogen.services.google_auth import google_verifier
from studiogen.services.password_service import password_service
from studiogen.services.token_service import TokenPair, hash_token, token_service
from studiogen.utils import ClientInfo, as_utc, utc_now

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials. Please try again."
ACCOUNT_LOCKED_NOTICE = "Account locked due to too many failed attempts."
REFRESH_EXPIRED = "Refresh token expired or invalid"


def default_avatar_url(name: str) -> str:
    return f"https://api.dicebear.com/8.x/initials/svg?seed={quote(name, safe='')}"


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


class AuthService:
    """
    Stateless: every method receives the request's session and caller info.

    Error Handling Strategy:
        Client mistakes raise ValidationError / AuthenticationError /
        ConflictError / AccountLockedError; the global handlers render them.
    """

    # ── Helpers ───────────────────────────────────────────────────────────
    async def _find_by_identifier(self, db: AsyncSession, identifier: str) -> Optional[User]:
        column = User.email if is_email_identifier(identifier) else User.phone
        result = await db.execute(select(User).where(column == identifier))
        return result.scalar_one_or_none()

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _start_session(self, db: AsyncSession, user: User, client: ClientInfo) -> TokenPair:
        """Issue an access/refresh pair and persist the refresh token's hash."""
        tokens = token_service.issue_pair(user.id, user.email)
        db.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_token(tokens.refresh_token),
                device_info=client.user_agent,
                ip_address=client.ip_address,
                expires_at=tokens.refresh_expires_at,
            )
        )
        await db.flush()
        return tokens

    async def _consume_refresh_token(self, db: AsyncSession, token_id: uuid.UUID) -> bool:
        """Delete one refresh token row. Returns False if it was already gone."""
        result = await db.execute(
            delete(RefreshToken)
            .where(RefreshToken.id == token_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _revoke_all_sessions(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))

    # ── Signup / Login ────────────────────────────────────────────────────
    async def signup(self, db: AsyncSession, data: SignupRequest, client: ClientInfo) -> AuthResult:
        """
        Create a password account identified by email or phone.

        Raises:
            ConflictError: the email or phone is already registered
        """
        is_email = is_email_identifier(data.identifier)
        if await self._find_by_identifier(db, data.identifier):
            raise ConflictError("An account with this email or phone already exists.")

        user = User(
            email=data.identifier if is_email else None,
            phone=None if is_email else data.identifier,
            password_hash=await password_service.hash_password(data.password),
            name=data.full_name,
            avatar_url=default_avatar_url(data.full_name),
            credits=settings.default_credits,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent signup with the same identifier
            raise ConflictError("An account with this email or phone already exists.")

        tokens = await self._start_session(db, user, client)
        await log_event(db, AuditAction.SIGNUP, user.id, client)
        logger.info("User signed up: %s (%s)", user.id, user.identifier_type)
        return AuthResult(user=user, tokens=tokens)

    async def login(self, db: AsyncSession, data: LoginRequest, client: ClientInfo) -> AuthResult:
        """
        Password login with lockout.

        Raises:
            AuthenticationError: unknown identifier or wrong password
            AccountLockedError: account inside its lockout window
        """
        user = await self._find_by_identifier(db, data.identifier)

        if user is None or not user.password_hash:
            await log_event(
                db,
                AuditAction.LOGIN_FAILED,
                None,
                client,
                {"identifier": data.identifier, "reason": "User not found"},
            )
            await db.commit()
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = utc_now()
        locked_until = as_utc(user.locked_until)
        if locked_until and locked_until > now:
            raise AccountLockedError(locked_until=locked_until)

        if not await password_service.verify_password(data.password, user.password_hash):
            locked = await self._record_failed_login(db, user, client)
            if locked:
                raise AuthenticationError(
                    f"{INVALID_CREDENTIALS} {ACCOUNT_LOCKED_NOTICE}",
                    code="ACCOUNT_LOCKED",
                )
            raise AuthenticationError(INVALID_CREDENTIALS)

        was_locked = user.locked_until is not None
        user.failed_logins = 0
        user.locked_until = None
        user.last_login_at = now
        if was_locked:
            await log_event(db, AuditAction.ACCOUNT_UNLOCKED, user.id, client)

        tokens = await self._start_session(db, user, client)
        await log_event(db, AuditAction.LOGIN, user.id, client)
        logger.info("User logged in: %s", user.id)
        return AuthResult(user=user, tokens=tokens)

    async def _record_failed_login(self, db: AsyncSession, user: User, client: ClientInfo) -> bool:
        """Count the failure and lock when the limit is reached. Returns True if locked."""
        user.failed_logins = (user.failed_logins or 0) + 1
        should_lock = user.failed_logins >= settings.max_login_attempts
        user.locked_until = (
            utc_now() + timedelta(minutes=settings.lockout_minutes) if should_lock else None
        )

        if should_lock:
            logger.warning("Account locked after %d failed logins: %s", user.failed_logins, user.id)
            await log_event(db, AuditAction.ACCOUNT_LOCKED, user.id, client)
        await log_event(db, AuditAction.LOGIN_FAILED, user.id, client, {"reason": "Invalid password"})
        await db.commit()
        return should_lock

    async def google_login(self, db: AsyncSession, credential: str, client: ClientInfo) -> AuthResult:
        """
        Sign in (or sign up) with a Google Identity Services credential.

        Lookup order: google_id, then email. An existing password account with
        the same email gets the Google identity linked to it.
        """
        identity = await google_verifier.verify(credential)

        result = await db.execute(select(User).where(User.google_id == identity.sub))
        user = result.scalar_one_or_none()
        if user is None:
            user = await self._find_by_email(db, identity.email)

        if user is None:
            name = identity.name or identity.email.split("@")[0] or "Google User"
            user = User(
                google_id=identity.sub,
                email=identity.email,
                name=name,
                avatar_url=identity.picture or default_avatar_url(identity.name or "User"),
                email_verified=identity.email_verified,
                credits=settings.default_credits,
            )
            db.add(user)
            await db.flush()
            await log_event(db, AuditAction.SIGNUP, user.id, client, {"provider": "google"})
            logger.info("User signed up with Google: %s", user.id)
        elif not user.google_id:
            user.google_id = identity.sub
            user.email_verified = identity.email_verified or user.email_verified
            logger.info("Linked Google account to user %s", user.id)

        if not user.is_active:
            raise AuthenticationError("User account is inactive")

        user.last_login_at = utc_now()
        tokens = await self._start_session(db, user, client)
        await log_event(db, AuditAction.GOOGLE_LOGIN, user.id, client)
        return AuthResult(user=user, tokens=tokens)

    # ── Token lifecycle ───────────────────────────────────────────────────
    async def refresh(self, db: AsyncSession, refresh_token: str, client: ClientInfo) -> TokenPair:
        """Rotate a refresh token: the presented one is consumed, a new pair is issued."""
        payload = token_service.decode_refresh_token(refresh_token)
        if payload is None:
            raise AuthenticationError("Invalid refresh token")

        result = await db.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
        )
        stored = result.scalar_one_or_none()

        if stored is None or as_utc(stored.expires_at) < utc_now():
            if stored is not None:
                await self._consume_refresh_token(db, stored.id)
                await db.commit()
            raise AuthenticationError(REFRESH_EXPIRED)

        user = await db.get(User, stored.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("User account is inactive")

        # A concurrent refresh with the same token may have deleted the row already
        if not await self._consume_refresh_token(db, stored.id):
            raise AuthenticationError(REFRESH_EXPIRED)

        tokens = await self._start_session(db, user, client)
        await log_event(db, AuditAction.TOKEN_REFRESH, user.id, client)
        return tokens

    async def logout(
        self,
        db: AsyncSession,
        user: User,
        refresh_token: Optional[str],
        client: ClientInfo,
    ) -> None:
        if refresh_token:
            await db.execute(
                delete(RefreshToken).where(
                    RefreshToken.token_hash == hash_token(refresh_token),
                    RefreshToken.user_id == user.id,
                )
            )
        await log_event(db, AuditAction.LOGOUT, user.id, client)

    async def logout_all(self, db: AsyncSession, user: User, client: ClientInfo) -> None:
        await self._revoke_all_sessions(db, user.id)
        await log_event(db, AuditAction.LOGOUT, user.id, client, {"allDevices": True})

    # ── Profile ───────────────────────────────────────────────────────────
    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        data: UpdateProfileRequest,
        client: ClientInfo,
    ) -> User:
        """Apply the fields present in the request; empty strings clear a field."""
        provided = data.model_fields_set
        changed: List[str] = []

        if "name" in provided and data.name:
            user.name = data.name.strip()
            changed.append("name")

        if "phone" in provided:
            new_phone = data.phone or None
            if new_phone and new_phone != user.phone:
                result = await db.execute(
                    select(User.id).where(User.phone == new_phone, User.id != user.id)
                )
                if result.first() is not None:
                    raise ConflictError("This phone number is already in use.")
            user.phone = new_phone
            changed.append("phone")

        if "dob" in provided:
            user.dob = date.fromisoformat(data.dob) if data.dob else None
            changed.append("dob")

        if "avatar_url" in provided:
            user.avatar_url = data.avatar_url or None
            changed.append("avatar_url")

        await db.flush()
        await log_event(
            db,
            AuditAction.PROFILE_UPDATE,
            user.id,
            client,
            {"fields": [to_camel(field) for field in changed]},
        )
        return user

    # ── Passwords ─────────────────────────────────────────────────────────
    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        data: ChangePasswordRequest,
        client: ClientInfo,
    ) -> None:
        """Replace the password and sign out every device."""
        if not user.password_hash:
            raise ValidationError("Cannot change password for OAuth-only accounts")

        if not await password_service.verify_password(data.current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = await password_service.hash_password(data.new_password)
        await self._revoke_all_sessions(db, user.id)
        await log_event(db, AuditAction.PASSWORD_CHANGE, user.id, client)

    async def request_password_reset(
        self,
        db: AsyncSession,
        email: str,
        client: ClientInfo,
    ) -> Optional[str]:
        """
        Create a one-hour reset token for the account, if there is one.

        Returns the raw token (only its hash is stored), or None for unknown
        emails. Callers must answer identically in both cases.
        """
        user = await self._find_by_email(db, email)
        if user is None:
            return None

        raw_token = secrets.token_hex(32)
        user.reset_token_hash = hash_token(raw_token)
        user.reset_token_expires_at = utc_now() + timedelta(minutes=settings.reset_token_expire_minutes)
        await log_event(db, AuditAction.PASSWORD_RESET_REQUEST, user.id, client)
        logger.info("Password reset requested for user %s", user.id)
        return raw_token

    async def reset_password(
        self,
        db: AsyncSession,
        token: str,
        new_password: str,
        client: ClientInfo,
    ) -> None:
        result = await db.execute(select(User).where(User.reset_token_hash == hash_token(token)))
        user = result.scalar_one_or_none()

        expires_at = as_utc(user.reset_token_expires_at) if user else None
        if user is None or expires_at is None or expires_at <= utc_now():
            raise ValidationError("Invalid or expired reset token", field="token")

        was_locked = user.locked_until is not None
        user.password_hash = await password_service.hash_password(new_password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        user.failed_logins = 0
        user.locked_until = None

        await self._revoke_all_sessions(db, user.id)
        if was_locked:
            await log_event(db, AuditAction.ACCOUNT_UNLOCKED, user.id, client)
        await log_event(db, AuditAction.PASSWORD_RESET, user.id, client)


auth_service = AuthService()
