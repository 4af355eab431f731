"""
API error envelope.

Failures are returned as {message, error, attemptsRemaining?, detail?}
where `error` is the machine-readable reason code.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rideauth.services import AuthFailure

logger = logging.getLogger(__name__)


class AuthAPIError(Exception):
    """An auth failure to be rendered as an error response."""

    def __init__(
        self,
        status_code: int,
        reason: AuthFailure,
        message: Optional[str] = None,
        detail: Optional[str] = None,
        attempts_remaining: Optional[int] = None,
        headers: Optional[dict] = None
    ):
        self.status_code = status_code
        self.reason = reason
        self.message = message or reason.message
        self.detail = detail
        self.attempts_remaining = attempts_remaining
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message, "error": self.reason.value}
        if self.attempts_remaining is not None:
            body["attemptsRemaining"] = self.attempts_remaining
        if self.detail:
            body["detail"] = self.detail
        return body


def status_for(reason: AuthFailure) -> int:
    """HTTP status for a failure reason."""
    if reason.is_token_failure or reason == AuthFailure.INVALID_API_KEY:
        return status.HTTP_401_UNAUTHORIZED
    if reason == AuthFailure.FORBIDDEN:
        return status.HTTP_403_FORBIDDEN
    if reason == AuthFailure.GATEWAY_FAILURE:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def error_for(result, development: bool = False) -> AuthAPIError:
    """
    Build an AuthAPIError from a failed AuthResult or PasscodeResult.

    The result's free-form error text is only passed through in development.
    """
    headers = None
    if result.reason.is_token_failure:
        headers = {"WWW-Authenticate": "Bearer"}

    return AuthAPIError(
        status_code=status_for(result.reason),
        reason=result.reason,
        detail=result.error if development else None,
        attempts_remaining=result.attempts_remaining,
        headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for auth failures, bad request bodies and crashes."""

    @app.exception_handler(AuthAPIError)
    async def handle_auth_error(request: Request, exc: AuthAPIError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(f"{request.method} {request.url.path} -> {exc.status_code} {exc.reason.value}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Validation failed",
                "error": AuthFailure.VALIDATION_ERROR.value,
                "errors": jsonable_encoder(exc.errors()),
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"}
        )
