"""Failure reasons shared by the auth services and the API."""

from enum import Enum


class AuthFailure(str, Enum):
    """Machine-readable reason attached to every failed auth operation."""

    # Input
    VALIDATION_ERROR = "validation_error"

    # Passcode flow
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    GATEWAY_FAILURE = "gateway_failure"

    # Token flow
    NO_TOKEN = "no_token"
    TOKEN_EXPIRED = "token_expired"
    MALFORMED_TOKEN = "malformed_token"
    WRONG_TOKEN_KIND = "wrong_token_kind"
    STALE_TOKEN = "stale_token"
    UNKNOWN_USER = "unknown_user"
    ACCOUNT_INACTIVE = "account_inactive"

    # Access control
    FORBIDDEN = "forbidden"
    INVALID_API_KEY = "invalid_api_key"

    @property
    def message(self) -> str:
        return MESSAGES[self]

    @property
    def is_token_failure(self) -> bool:
        return self in TOKEN_FAILURES


MESSAGES = {
    AuthFailure.VALIDATION_ERROR: "Invalid phone number format. Must include country code (e.g., +94XXXXXXXXX)",
    AuthFailure.NOT_FOUND: "OTP not found. Please request a new OTP.",
    AuthFailure.EXPIRED: "OTP expired. Please request a new OTP.",
    AuthFailure.INVALID_CODE: "Invalid OTP",
    AuthFailure.TOO_MANY_ATTEMPTS: "Too many failed attempts. Please request a new OTP.",
    AuthFailure.GATEWAY_FAILURE: "Failed to send OTP. Please try again later.",
    AuthFailure.NO_TOKEN: "No token provided",
    AuthFailure.TOKEN_EXPIRED: "Token expired",
    AuthFailure.MALFORMED_TOKEN: "Invalid token",
    AuthFailure.WRONG_TOKEN_KIND: "Invalid token type",
    AuthFailure.STALE_TOKEN: "Invalid refresh token",
    AuthFailure.UNKNOWN_USER: "User not found",
    AuthFailure.ACCOUNT_INACTIVE: "Account inactive",
    AuthFailure.FORBIDDEN: "Forbidden",
    AuthFailure.INVALID_API_KEY: "Invalid API key",
}

TOKEN_FAILURES = frozenset({
    AuthFailure.NO_TOKEN,
    AuthFailure.TOKEN_EXPIRED,
    AuthFailure.MALFORMED_TOKEN,
    AuthFailure.WRONG_TOKEN_KIND,
    AuthFailure.STALE_TOKEN,
    AuthFailure.UNKNOWN_USER,
    AuthFailure.ACCOUNT_INACTIVE,
})
