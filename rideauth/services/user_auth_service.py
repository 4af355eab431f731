"""
User authentication service.

Passwordless phone login: OTP request and verification, access/refresh
token issuance with refresh rotation, and access-token authentication for
incoming requests.
"""

import logging
from typing import Optional
from dataclasses import dataclass

from ..auth import TokenIssuer, TokenError, UserStore, User, mask_phone
from .errors import AuthFailure
from .passcode_service import PasscodeService, PasscodeResult

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class AuthTokens:
    """Authentication tokens response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 86400 * 7  # seconds

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in
        }


@dataclass
class AuthResult:
    """Authentication result."""
    success: bool
    tokens: Optional[AuthTokens] = None
    user: Optional[User] = None
    reason: Optional[AuthFailure] = None
    error: Optional[str] = None
    attempts_remaining: Optional[int] = None

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None

    @classmethod
    def failure(cls, reason: AuthFailure, error: Optional[str] = None, **kwargs) -> "AuthResult":
        return cls(success=False, reason=reason, error=error, **kwargs)

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.tokens:
            result["tokens"] = self.tokens.to_dict()
        if self.user:
            result["user"] = self.user.public_dict()
        if self.reason:
            result["reason"] = self.reason.value
            result["message"] = self.message
        if self.error:
            result["error"] = self.error
        if self.attempts_remaining is not None:
            result["attempts_remaining"] = self.attempts_remaining
        return result


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class UserAuthService:
    """
    Service for user authentication.

    Handles:
    - Passcode request (creates the user on first contact)
    - Passcode verification and login
    - Refresh token rotation
    - Access token authentication
    """

    def __init__(
        self,
        tokens: TokenIssuer,
        users: UserStore,
        passcodes: PasscodeService
    ):
        self.tokens = tokens
        self.users = users
        self.passcodes = passcodes

    def _token_pair(self, access: str, refresh: str) -> AuthTokens:
        return AuthTokens(
            access_token=access,
            refresh_token=refresh,
            expires_in=self.tokens.access_expires_in
        )

    def request_otp(self, phone: str) -> PasscodeResult:
        """Issue and send a passcode for `phone`."""
        return self.passcodes.request_passcode(phone)

    def verify_otp(self, phone: str, code: str) -> AuthResult:
        """
        Verify a passcode and log the user in.

        Args:
            phone: Phone number the passcode was sent to
            code: Submitted passcode

        Returns:
            AuthResult with a fresh token pair and the verified user
        """
        check = self.passcodes.verify_passcode(phone, code)
        if not check.success:
            return AuthResult.failure(check.reason, attempts_remaining=check.attempts_remaining)

        user = self.users.mark_verified(check.phone)

        access, refresh = self.tokens.create_token_pair(user.user_id, user.phone)
        self.users.set_refresh_token(user.user_id, refresh)
        user = self.users.record_login(user.user_id) or user

        logger.info(f"User logged in: {mask_phone(user.phone)}")
        return AuthResult(success=True, tokens=self._token_pair(access, refresh), user=user)

    def refresh_token(self, refresh_token: str) -> AuthResult:
        """
        Exchange a refresh token for a new pair, rotating the stored token.

        The submitted token must equal the one stored on the user; once
        rotated, the old token is rejected as stale even before it expires.

        Args:
            refresh_token: Refresh token from the last login or refresh

        Returns:
            AuthResult with new access and refresh tokens
        """
        try:
            payload = self.tokens.verify_refresh_token(refresh_token)
        except TokenError as e:
            logger.debug(f"Refresh rejected: {e}")
            return AuthResult.failure(AuthFailure(e.reason), error=str(e))

        user = self.users.get_by_id(payload.user_id)
        if not user:
            return AuthResult.failure(AuthFailure.UNKNOWN_USER)

        if user.refresh_token != refresh_token:
            logger.warning(f"Stale refresh token presented for user {user.user_id}")
            return AuthResult.failure(AuthFailure.STALE_TOKEN, error="Refresh token does not match stored token")

        if not user.is_active:
            return AuthResult.failure(AuthFailure.ACCOUNT_INACTIVE, error="User account is deactivated")

        access, new_refresh = self.tokens.create_token_pair(user.user_id, user.phone)
        if not self.users.rotate_refresh_token(user.user_id, refresh_token, new_refresh):
            # A concurrent refresh with the same token won the race
            logger.warning(f"Refresh token rotated concurrently for user {user.user_id}")
            return AuthResult.failure(AuthFailure.STALE_TOKEN, error="Refresh token does not match stored token")

        logger.debug(f"Rotated refresh token for user {user.user_id}")
        return AuthResult(success=True, tokens=self._token_pair(access, new_refresh), user=user)

    def authenticate(self, authorization: Optional[str]) -> AuthResult:
        """
        Resolve the user behind an Authorization header.

        Args:
            authorization: Raw header value ("Bearer <access token>")

        Returns:
            AuthResult carrying the user on success
        """
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthResult.failure(
                AuthFailure.NO_TOKEN,
                error="Authorization header with Bearer token is required"
            )
        return self.authenticate_token(token)

    def authenticate_token(self, access_token: str) -> AuthResult:
        """Resolve the user behind a bare access token."""
        try:
            payload = self.tokens.verify_access_token(access_token)
        except TokenError as e:
            return AuthResult.failure(AuthFailure(e.reason), error=str(e))

        user = self.users.get_by_id(payload.user_id)
        if user is None:
            return AuthResult.failure(AuthFailure.UNKNOWN_USER)

        if not user.is_active:
            return AuthResult.failure(AuthFailure.ACCOUNT_INACTIVE, error="User account is deactivated")

        return AuthResult(success=True, user=user)

