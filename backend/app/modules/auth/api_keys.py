"""Personal API keys for external integrations (voice assistants, scripts).

Only the SHA-256 digest of a key is stored, so a raw key is shown exactly
once. Every failed authentication is padded to the same minimum latency so
callers cannot tell failure reasons apart by timing.
"""

import hashlib
import logging
import math
import os
import secrets
import time
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, RateLimited, Unauthorized
from app.modules.auth.deps import EnsureUtc, NowUtc
from app.modules.auth.models import User

logger = logging.getLogger("auth.api_keys")

API_KEY_PREFIX = "sk_"
API_KEY_BYTES = 32
KEY_GENERATION_COOLDOWN = timedelta(hours=1)
_BEARER_PREFIX = "Bearer "
_INVALID_MESSAGE = "Invalid API key"


@dataclass
class ApiUser:
    Id: int
    Email: str


def _failure_min_seconds() -> float:
    raw = os.getenv("API_AUTH_FAILURE_MIN_MS", "").strip()
    try:
        return max(int(raw), 0) / 1000 if raw else 0.25
    except ValueError:
        return 0.25


def HashApiKey(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def CreateApiKey() -> tuple[str, str]:
    raw_key = API_KEY_PREFIX + secrets.token_hex(API_KEY_BYTES)
    return raw_key, HashApiKey(raw_key)


def _GetUser(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.Id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


def GenerateApiKey(db: Session, user_id: int) -> str:
    user = _GetUser(db, user_id)
    now = NowUtc()
    created_at = EnsureUtc(user.ApiKeyCreatedAt)
    if created_at and created_at + KEY_GENERATION_COOLDOWN > now:
        remaining = (created_at + KEY_GENERATION_COOLDOWN - now).total_seconds()
        wait_minutes = max(math.ceil(remaining / 60), 1)
        logger.warning("api key generation throttled user_id=%s wait_minutes=%s", user_id, wait_minutes)
        raise RateLimited(
            f"API key was recently generated. Please wait {wait_minutes} minutes before generating a new one.",
            retry_after_seconds=int(math.ceil(remaining)),
        )

    raw_key, key_hash = CreateApiKey()
    user.ApiKeyHash = key_hash
    user.ApiKeyCreatedAt = now
    user.ApiKeyLastUsed = None
    db.add(user)
    db.commit()
    logger.info("api key generated user_id=%s", user_id)
    return raw_key


def RevokeApiKey(db: Session, user_id: int) -> None:
    user = _GetUser(db, user_id)
    user.ApiKeyHash = None
    user.ApiKeyCreatedAt = None
    user.ApiKeyLastUsed = None
    db.add(user)
    db.commit()
    logger.info("api key revoked user_id=%s", user_id)


def GetApiKeyStatus(db: Session, user_id: int) -> dict:
    user = _GetUser(db, user_id)
    if not user.ApiKeyHash:
        return {"hasKey": False}
    created_at = EnsureUtc(user.ApiKeyCreatedAt)
    last_used = EnsureUtc(user.ApiKeyLastUsed)
    return {
        "hasKey": True,
        "createdAt": created_at.isoformat() if created_at else None,
        "lastUsed": last_used.isoformat() if last_used else None,
    }


def _ExtractKey(header_value: str | None) -> str | None:
    if not header_value or not header_value.startswith(_BEARER_PREFIX):
        return None
    raw_key = header_value[len(_BEARER_PREFIX):].strip()
    if not raw_key.startswith(API_KEY_PREFIX) or len(raw_key) <= len(API_KEY_PREFIX):
        return None
    return raw_key


def _PadFailure(started_at: float) -> None:
    remaining = _failure_min_seconds() - (time.perf_counter() - started_at)
    if remaining > 0:
        time.sleep(remaining)


def _RecordUse(db: Session, user: User) -> None:
    try:
        user.ApiKeyLastUsed = NowUtc()
        db.add(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to record api key use user_id=%s", user.Id)


def AuthenticateApiKey(db: Session, header_value: str | None) -> ApiUser:
    started_at = time.perf_counter()
    raw_key = _ExtractKey(header_value)
    user = None
    if raw_key:
        user = db.query(User).filter(User.ApiKeyHash == HashApiKey(raw_key)).first()
    if not user:
        _PadFailure(started_at)
        logger.debug("api key rejected")
        raise Unauthorized(_INVALID_MESSAGE)

    _RecordUse(db, user)
    return ApiUser(Id=user.Id, Email=user.Email)
