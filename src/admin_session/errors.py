"""Error codes, exceptions and the JSON error envelope."""

from __future__ import annotations

import logging
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from admin_session.schemas import Result

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Stable machine-readable error codes and their HTTP status."""

    # System errors (10000-19999)
    SYSTEM_ERROR = ("10000", "Internal system error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Request errors (20000-29999)
    PARAM_VALIDATION_ERROR = ("20001", "Parameter validation failed", status.HTTP_400_BAD_REQUEST)
    DATA_NOT_FOUND = ("20002", "Data not found", status.HTTP_404_NOT_FOUND)

    # Authentication errors (30000-39999)
    AUTHENTICATION_ERROR = ("30000", "Authentication failed", status.HTTP_401_UNAUTHORIZED)
    AUTHORIZATION_ERROR = ("30001", "Insufficient permissions", status.HTTP_403_FORBIDDEN)
    TOKEN_INVALID = ("30002", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    TOKEN_MISSING = ("30003", "Token missing", status.HTTP_401_UNAUTHORIZED)
    TOKEN_FINGERPRINT_MISMATCH = (
        "30004",
        "Token fingerprint mismatch, possibly already used",
        status.HTTP_401_UNAUTHORIZED,
    )
    SESSION_EXPIRED = ("30005", "Session expired", status.HTTP_401_UNAUTHORIZED)

    def __init__(self, code: str, message: str, http_status: int) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status


class AppError(Exception):
    """Base class for errors rendered as an error envelope."""

    error_code: ErrorCode = ErrorCode.SYSTEM_ERROR

    def __init__(self, message: str | None = None, *, error_code: ErrorCode | None = None) -> None:
        if error_code is not None:
            self.error_code = error_code
        self.message = message or self.error_code.message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.error_code.http_status


class DataNotFoundError(AppError):
    """Requested record does not exist (404)."""
    error_code = ErrorCode.DATA_NOT_FOUND


class TokenMissingError(AppError):
    """No access token on a protected path (401)."""
    error_code = ErrorCode.TOKEN_MISSING


class TokenInvalidError(AppError):
    """Token failed to parse or its signature did not verify (401)."""
    error_code = ErrorCode.TOKEN_INVALID


class SessionExpiredError(AppError):
    """Token is well-formed but no session exists for its subject (401)."""
    error_code = ErrorCode.SESSION_EXPIRED


class TokenFingerprintMismatchError(AppError):
    """Expired token was already superseded by a renewal (401)."""
    error_code = ErrorCode.TOKEN_FINGERPRINT_MISMATCH


class AuthenticationError(AppError):
    """Credential check failed during login (401)."""
    error_code = ErrorCode.AUTHENTICATION_ERROR


class AuthorizationError(AppError):
    """Authenticated principal lacks a required authority (403)."""
    error_code = ErrorCode.AUTHORIZATION_ERROR


def error_response(error_code: ErrorCode, message: str | None = None) -> JSONResponse:
    """Render an error envelope with the status mapped from the error code."""
    body = Result.error(error_code.code, message or error_code.message)
    return JSONResponse(status_code=error_code.http_status, content=body.model_dump())


def _code_for_status(status_code: int) -> ErrorCode:
    for error_code in ErrorCode:
        if error_code.http_status == status_code:
            return error_code
    return ErrorCode.SYSTEM_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Install envelope-producing handlers for application and framework errors."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        logger.warning(
            f"Request rejected - Code: {exc.error_code.code}, Message: {exc.message}, "
            f"URI: {request.url.path}"
        )
        return error_response(exc.error_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        message = ", ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        logger.warning(f"Validation failed - URI: {request.url.path}, Errors: {message}")
        return error_response(ErrorCode.PARAM_VALIDATION_ERROR, message)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        error_code = _code_for_status(exc.status_code)
        body = Result.error(error_code.code, str(exc.detail))
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            f"System exception - Type: {type(exc).__name__}, URI: {request.url.path}",
            exc_info=exc,
        )
        return error_response(ErrorCode.SYSTEM_ERROR)
