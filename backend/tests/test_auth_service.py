import pytest
from fastapi import HTTPException

from app.modules.auth.deps import _decode_access_token
from app.modules.auth.service import CreateAccessToken, HashPassword, VerifyPassword


def test_access_token_carries_user_claims(monkeypatch):
    monkeypatch.setenv("JWT_ACCESS_TTL_MINUTES", "30")

    token, expires_in = CreateAccessToken(42, "owner@shopper.io")
    claims = _decode_access_token(token)

    assert expires_in == 30 * 60
    assert claims["sub"] == "42"
    assert claims["email"] == "owner@shopper.io"
    assert claims["exp"] - claims["iat"] == 30 * 60


def test_token_signed_with_another_secret_is_rejected(monkeypatch):
    token, _ = CreateAccessToken(42, "owner@shopper.io")
    monkeypatch.setenv("JWT_SECRET_KEY", "a-different-secret-of-sufficient-length")

    with pytest.raises(HTTPException) as exc_info:
        _decode_access_token(token)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid token"


def test_password_hash_round_trip():
    password_hash = HashPassword("correct horse battery")

    assert password_hash != "correct horse battery"
    assert VerifyPassword("correct horse battery", password_hash) is True
    assert VerifyPassword("wrong horse battery", password_hash) is False
