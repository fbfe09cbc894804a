"""
StudioGen Backend - Token Service Unit Tests
==============================================

Access/refresh JWT issuing and verification. No database involved.
"""

import uuid
from datetime import timedelta

import jwt
import pytest

from studiogen.exceptions import AuthenticationError
from studiogen.services.token_service import TokenService, hash_token


@pytest.fixture
def service() -> TokenService:
    return TokenService(access_secret="access-secret-for-tests", refresh_secret="refresh-secret-for-tests")


class TestAccessTokens:
    def test_round_trip_claims(self, service):
        user_id = uuid.uuid4()
        token = service.create_access_token(user_id, "a@example.com")

        claims = service.decode_access_token(token)

        assert claims["sub"] == str(user_id)
        assert claims["email"] == "a@example.com"
        assert claims["type"] == "access"
        assert claims["jti"]

    def test_email_claim_omitted_for_phone_accounts(self, service):
        claims = service.decode_access_token(service.create_access_token(uuid.uuid4()))
        assert "email" not in claims

    def test_expired_token_has_expired_code(self):
        service = TokenService("a-secret", "r-secret", access_ttl=timedelta(seconds=-5))
        token = service.create_access_token(uuid.uuid4())

        with pytest.raises(AuthenticationError) as exc_info:
            service.decode_access_token(token)

        assert exc_info.value.message == "Token expired"
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_secret_is_invalid(self, service):
        other = TokenService("another-access-secret", "another-refresh-secret")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            service.decode_access_token(other.create_access_token(uuid.uuid4()))

    def test_garbage_is_invalid(self, service):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            service.decode_access_token("not.a.jwt")

    def test_access_secret_token_with_refresh_type_rejected(self, service):
        forged = jwt.encode(
            {"sub": str(uuid.uuid4()), "type": "refresh", "exp": 9999999999},
            service.access_secret,
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError, match="Invalid token type"):
            service.decode_access_token(forged)


class TestRefreshTokens:
    def test_round_trip(self, service):
        user_id = uuid.uuid4()
        claims = service.decode_refresh_token(service.create_refresh_token(user_id))
        assert claims["sub"] == str(user_id)
        assert claims["type"] == "refresh"

    def test_access_token_is_not_a_refresh_token(self, service):
        assert service.decode_refresh_token(service.create_access_token(uuid.uuid4())) is None

    def test_expired_refresh_token_returns_none(self):
        service = TokenService("a-secret", "r-secret", refresh_ttl=timedelta(seconds=-5))
        assert service.decode_refresh_token(service.create_refresh_token(uuid.uuid4())) is None

    def test_tokens_minted_together_differ(self, service):
        user_id = uuid.uuid4()
        first = service.issue_pair(user_id)
        second = service.issue_pair(user_id)
        assert first.refresh_token != second.refresh_token
        assert first.access_token != second.access_token


def test_hash_token_is_stable_sha256():
    digest = hash_token("abc")
    assert digest == hash_token("abc")
    assert len(digest) == 64
    assert digest != hash_token("abd")
