"""
JWT token handler.

Generates and validates the two token kinds used by the service:
short-lived access tokens for API calls and long-lived refresh tokens used
only to obtain a new pair. Each kind is signed with its own secret, so one
can never be verified as the other.
"""

import time
import uuid
import logging
from typing import Callable, Optional, Literal
from dataclasses import dataclass, asdict

from jose import jwt, JWTError

from ..config import JWTConfig, DEFAULT_ACCESS_SECRET, DEFAULT_REFRESH_SECRET

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

TokenType = Literal["access", "refresh"]
AuthType = Literal["sms_otp"]


class TokenError(Exception):
    """Base class for token verification failures."""
    reason = "malformed_token"


class TokenExpiredError(TokenError):
    reason = "token_expired"


class MalformedTokenError(TokenError):
    reason = "malformed_token"


class WrongTokenTypeError(TokenError):
    reason = "wrong_token_kind"


@dataclass
class TokenPayload:
    """JWT token payload."""
    user_id: str
    phone: str
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp
    jti: str  # Unique token id
    token_type: TokenType = "access"
    auth_type: AuthType = "sms_otp"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenPayload":
        try:
            return cls(
                user_id=str(data["user_id"]),
                phone=str(data["phone"]),
                exp=int(data["exp"]),
                iat=int(data["iat"]),
                jti=str(data["jti"]),
                token_type=data["token_type"],
                auth_type=data.get("auth_type", "sms_otp"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTokenError(f"Missing or invalid claim: {e}") from e


class JWTHandler:
    """
    Signs and verifies a single kind of token.

    Two instances with different secrets and token types make up a
    TokenIssuer; the handler itself knows nothing about the other kind
    beyond recognising it in an unverified token.
    """

    def __init__(
        self,
        secret_key: str,
        token_type: TokenType,
        expires_in: int,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize JWT handler.

        Args:
            secret_key: Secret key for signing tokens of this kind
            token_type: "access" or "refresh"
            expires_in: Token lifetime in seconds
            clock: Returns the current epoch time (default: time.time)
        """
        if not secret_key:
            raise ValueError(f"A signing secret is required for {token_type} tokens")

        self.secret_key = secret_key
        self.token_type = token_type
        self.expires_in = expires_in
        self._clock = clock or time.time

    def create_token(
        self,
        user_id: str,
        phone: str,
        expires_in: Optional[int] = None
    ) -> str:
        """
        Create a signed token of this handler's kind.

        Args:
            user_id: Unique user identifier (token subject)
            phone: User's phone number
            expires_in: Custom lifetime in seconds

        Returns:
            Encoded JWT token string
        """
        now = int(self._clock())
        lifetime = self.expires_in if expires_in is None else expires_in
        exp = now + lifetime

        payload = TokenPayload(
            user_id=user_id,
            phone=phone,
            exp=exp,
            iat=now,
            jti=uuid.uuid4().hex,
            token_type=self.token_type
        )

        token = jwt.encode(payload.to_dict(), self.secret_key, algorithm=ALGORITHM)
        logger.debug(f"Created {self.token_type} token for user {user_id}, expires in {lifetime}s")
        return token

    def verify_token(self, token: str) -> TokenPayload:
        """
        Verify and decode a token.

        Args:
            token: JWT token string

        Returns:
            TokenPayload if valid

        Raises:
            WrongTokenTypeError: Token belongs to the other kind
            TokenExpiredError: Token is past its exp claim
            MalformedTokenError: Anything else (bad signature, garbage, missing claims)
        """
        if not token:
            raise MalformedTokenError("Empty token")

        try:
            # Expiry is checked below against the injected clock
            data = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False}
            )
        except JWTError as e:
            if self._claims_other_kind(token):
                raise WrongTokenTypeError(f"Expected {self.token_type} token") from e
            logger.debug(f"Token verification failed: {e}")
            raise MalformedTokenError(str(e)) from e

        payload = TokenPayload.from_dict(data)

        if payload.token_type != self.token_type:
            raise WrongTokenTypeError(f"Expected {self.token_type} token, got {payload.token_type}")

        if payload.exp <= int(self._clock()):
            logger.debug(f"{self.token_type} token expired for user {payload.user_id}")
            raise TokenExpiredError("Token expired")

        return payload

    def _claims_other_kind(self, token: str) -> bool:
        """Check the unverified token_type claim of a token we failed to verify."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return False
        token_type = claims.get("token_type")
        return token_type in ("access", "refresh") and token_type != self.token_type


class TokenIssuer:
    """
    Issues and verifies access/refresh token pairs.

    Access and refresh tokens use separate JWTHandler instances with
    distinct secrets.
    """

    def __init__(self, config: JWTConfig, clock: Optional[Callable[[], float]] = None):
        if config.access_secret == config.refresh_secret:
            raise ValueError("Access and refresh tokens must be signed with different secrets")

        if config.access_secret == DEFAULT_ACCESS_SECRET or config.refresh_secret == DEFAULT_REFRESH_SECRET:
            logger.warning(
                "Using default JWT secrets. "
                "Set JWT_SECRET and JWT_REFRESH_SECRET environment variables in production!"
            )

        self.access = JWTHandler(config.access_secret, "access", config.access_expire_seconds, clock)
        self.refresh = JWTHandler(config.refresh_secret, "refresh", config.refresh_expire_seconds, clock)

    @property
    def access_expires_in(self) -> int:
        return self.access.expires_in

    def issue_access_token(self, user_id: str, phone: str, expires_in: Optional[int] = None) -> str:
        return self.access.create_token(user_id, phone, expires_in)

    def issue_refresh_token(self, user_id: str, phone: str, expires_in: Optional[int] = None) -> str:
        return self.refresh.create_token(user_id, phone, expires_in)

    def create_token_pair(self, user_id: str, phone: str) -> tuple[str, str]:
        """
        Create both access and refresh tokens.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        access = self.issue_access_token(user_id, phone)
        refresh = self.issue_refresh_token(user_id, phone)
        return access, refresh

    def verify_access_token(self, token: str) -> TokenPayload:
        return self.access.verify_token(token)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        return self.refresh.verify_token(token)
