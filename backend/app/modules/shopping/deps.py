import logging

from fastapi import Depends, Request, Response
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.core.errors import BackendUnavailable, RateLimited
from app.db import GetDb
from app.modules.auth.api_keys import ApiUser, AuthenticateApiKey
from app.modules.auth.ratelimit import GetRateLimitGate

logger = logging.getLogger("shopping.deps")


def GetApiDb():
    sessions = GetDb()
    try:
        db = next(sessions)
    except RuntimeError as exc:
        # Raised by app.db when no database is configured.
        logger.error("database not configured: %s", exc)
        raise BackendUnavailable("Database not configured") from exc
    try:
        yield db
    finally:
        sessions.close()


def HandleDbError(exc: Exception) -> None:
    logger.exception("shopping database error")
    raise BackendUnavailable("Shopping storage not initialized. Run alembic upgrade head.") from exc


DB_ERRORS = (ProgrammingError, OperationalError)


def RequireApiUser(
    request: Request,
    response: Response,
    db: Session = Depends(GetApiDb),
) -> ApiUser:
    try:
        user = AuthenticateApiKey(db, request.headers.get("Authorization"))
    except DB_ERRORS as exc:
        HandleDbError(exc)
    result = GetRateLimitGate().Check(f"user:{user.Id}")
    headers = result.Headers()
    if not result.Allowed:
        raise RateLimited(
            "Rate limit exceeded. Please try again later.",
            retry_after_seconds=result.RetryAfterSeconds(),
            headers=headers,
        )
    response.headers.update(headers)
    return user
