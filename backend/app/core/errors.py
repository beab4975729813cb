import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("app.errors")


class AppError(Exception):
    StatusCode = 400

    def __init__(self, message: str, headers: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.Message = message
        self.Headers = headers or {}


class ValidationError(AppError):
    StatusCode = 400


class CapacityExceeded(ValidationError):
    """Batch or list/store size cap would be exceeded."""


class DuplicateName(AppError):
    StatusCode = 400


class AlreadyShared(AppError):
    StatusCode = 400


class Unauthorized(AppError):
    StatusCode = 401


class Forbidden(AppError):
    StatusCode = 403


class NotFound(AppError):
    """Missing entity, or one the caller may not see. The two are not distinguished."""

    StatusCode = 404


class RateLimited(AppError):
    StatusCode = 429

    def __init__(
        self,
        message: str,
        retry_after_seconds: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        merged = dict(headers or {})
        if retry_after_seconds is not None:
            merged.setdefault("Retry-After", str(max(retry_after_seconds, 0)))
        super().__init__(message, headers=merged)
        self.RetryAfterSeconds = retry_after_seconds


class BackendUnavailable(AppError):
    StatusCode = 503


def ApiSuccess(data) -> dict:
    return {"success": True, "data": data}


def ApiErrorResponse(message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"message": message}},
        headers=headers or None,
    )


def _FirstValidationMessage(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg") or "Invalid value"
    return f"{location}: {message}" if location else message


def RegisterErrorHandlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.StatusCode >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.Message)
        return ApiErrorResponse(exc.Message, exc.StatusCode, exc.Headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _FirstValidationMessage(exc)
        logger.debug("request validation failed path=%s detail=%s", request.url.path, message)
        return ApiErrorResponse(message, 400)
