"""
Authentication module for the ride auth service.

Provides passwordless phone authentication: passcode storage, the user
store, and JWT access/refresh token handling.
"""

from .jwt_handler import (
    JWTHandler,
    TokenIssuer,
    TokenPayload,
    TokenError,
    TokenExpiredError,
    MalformedTokenError,
    WrongTokenTypeError,
)
from .passcodes import PasscodeStore, PasscodeRecord
from .phone import normalize_phone, mask_phone
from .users import UserStore, User, ROLES

__all__ = [
    "JWTHandler",
    "TokenIssuer",
    "TokenPayload",
    "TokenError",
    "TokenExpiredError",
    "MalformedTokenError",
    "WrongTokenTypeError",
    "PasscodeStore",
    "PasscodeRecord",
    "normalize_phone",
    "mask_phone",
    "UserStore",
    "User",
    "ROLES",
]
