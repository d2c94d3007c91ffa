"""Tests for JWT access token management."""

from datetime import timedelta

import jwt
import pytest

from safaconnect.auth.jwt import create_access_token, reset_keys, verify_token
from safaconnect.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_keys():
    get_settings.cache_clear()
    reset_keys()
    yield
    reset_keys()


def _token(**kwargs) -> str:
    return create_access_token("user-1", "alice@example.com", "USER", "session-1", **kwargs)


class TestAccessToken:
    def test_create_and_verify(self):
        payload = verify_token(_token())
        assert payload["sub"] == "user-1"
        assert payload["email"] == "alice@example.com"
        assert payload["role"] == "USER"
        assert payload["sid"] == "session-1"
        assert payload["type"] == "access"
        assert payload["iss"] == get_settings().jwt_issuer

    def test_default_lifetime(self):
        payload = verify_token(_token())
        assert payload["exp"] - payload["iat"] == get_settings().jwt_access_token_expire_minutes * 60

    def test_each_token_has_unique_jti(self):
        assert verify_token(_token())["jti"] != verify_token(_token())["jti"]

    def test_expired_token_rejected(self):
        token = _token(expires_delta=timedelta(seconds=-1))
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_type_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(_token(), expected_type="refresh")

    def test_tampered_signature_rejected(self):
        token = _token()
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(tampered)

    def test_foreign_secret_rejected(self):
        settings = get_settings()
        forged = jwt.encode(
            {"sub": "user-1", "sid": "s", "exp": 9999999999, "iss": settings.jwt_issuer, "type": "access"},
            "some-other-secret-0123456789abcdef0123",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)

    def test_wrong_issuer_rejected(self):
        settings = get_settings()
        forged = jwt.encode(
            {"sub": "user-1", "sid": "s", "exp": 9999999999, "iss": "elsewhere", "type": "access"},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)

    def test_missing_session_claim_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "user-1", "exp": 9999999999, "iss": settings.jwt_issuer, "type": "access"},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)
