import re
from datetime import timedelta

import pytest

from app.core.errors import RateLimited, Unauthorized
from app.modules.auth import api_keys
from app.modules.auth.api_keys import (
    AuthenticateApiKey,
    GenerateApiKey,
    GetApiKeyStatus,
    HashApiKey,
    RevokeApiKey,
)
from app.modules.auth.deps import NowUtc


def test_generated_key_format_and_stored_hash(db, make_user):
    user = make_user("owner@shopper.io")

    raw_key = GenerateApiKey(db, user.Id)

    assert re.fullmatch(r"sk_[0-9a-f]{64}", raw_key)
    db.refresh(user)
    assert user.ApiKeyHash == HashApiKey(raw_key)
    assert user.ApiKeyHash != raw_key
    assert GetApiKeyStatus(db, user.Id)["hasKey"] is True


def test_generation_is_throttled_for_an_hour(db, make_user):
    user = make_user("owner@shopper.io")
    GenerateApiKey(db, user.Id)

    with pytest.raises(RateLimited) as exc_info:
        GenerateApiKey(db, user.Id)
    assert exc_info.value.Message == (
        "API key was recently generated. Please wait 60 minutes before generating a new one."
    )
    assert exc_info.value.Headers["Retry-After"]

    user.ApiKeyCreatedAt = NowUtc() - timedelta(minutes=61)
    db.commit()
    assert GenerateApiKey(db, user.Id).startswith("sk_")


def test_regenerating_invalidates_previous_key(db, make_user):
    user = make_user("owner@shopper.io")
    old_key = GenerateApiKey(db, user.Id)
    user.ApiKeyCreatedAt = NowUtc() - timedelta(hours=2)
    db.commit()
    new_key = GenerateApiKey(db, user.Id)

    assert AuthenticateApiKey(db, f"Bearer {new_key}").Id == user.Id
    with pytest.raises(Unauthorized):
        AuthenticateApiKey(db, f"Bearer {old_key}")


def test_authenticate_records_last_use(db, make_user):
    user = make_user("owner@shopper.io")
    raw_key = GenerateApiKey(db, user.Id)
    assert GetApiKeyStatus(db, user.Id)["lastUsed"] is None

    api_user = AuthenticateApiKey(db, f"Bearer {raw_key}")

    assert api_user.Email == "owner@shopper.io"
    assert GetApiKeyStatus(db, user.Id)["lastUsed"] is not None


@pytest.mark.parametrize(
    "header",
    [None, "", "Basic abc", "Bearer ", "Bearer not-a-key", "Bearer sk_", "Bearer sk_" + "0" * 64],
)
def test_authenticate_failures_share_message_and_padding(db, monkeypatch, header):
    sleeps = []
    monkeypatch.setenv("API_AUTH_FAILURE_MIN_MS", "200")
    monkeypatch.setattr(api_keys.time, "sleep", lambda seconds: sleeps.append(seconds))

    with pytest.raises(Unauthorized) as exc_info:
        AuthenticateApiKey(db, header)

    assert exc_info.value.Message == "Invalid API key"
    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 0.2


def test_revoked_key_stops_working(db, make_user):
    user = make_user("owner@shopper.io")
    raw_key = GenerateApiKey(db, user.Id)

    RevokeApiKey(db, user.Id)

    assert GetApiKeyStatus(db, user.Id) == {"hasKey": False}
    with pytest.raises(Unauthorized):
        AuthenticateApiKey(db, f"Bearer {raw_key}")
    assert GenerateApiKey(db, user.Id).startswith("sk_")
