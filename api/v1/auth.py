"""
Authentication endpoints.

Passwordless phone login: request an OTP, verify it for a token pair,
refresh the pair, and check the current session.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from rideauth.auth import User
from rideauth.services import AuthResult

from ..deps import ServicesDep, Services, CurrentUser
from ..errors import error_for

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response models

class CamelModel(BaseModel):
    """Accepts field names or their camelCase aliases; serializes by alias."""
    model_config = ConfigDict(populate_by_name=True)


class OTPRequest(CamelModel):
    """Passcode request."""
    phone: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("phone", "phoneNumber"),
        description="Phone number with country code (e.g., +94771234567)"
    )


class OTPVerifyRequest(CamelModel):
    """Passcode verification request."""
    phone: str = Field(..., min_length=1, validation_alias=AliasChoices("phone", "phoneNumber"))
    code: str = Field(..., min_length=1, validation_alias=AliasChoices("code", "otp"))


class RefreshRequest(CamelModel):
    """Token refresh request."""
    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refreshToken", "refresh_token")
    )


class OTPSentResponse(CamelModel):
    """Passcode dispatched."""
    message: str
    dev_code: Optional[str] = Field(None, alias="devCode")


class UserSummary(CamelModel):
    """Minimal user projection."""
    id: str
    phone_number: str = Field(..., alias="phoneNumber")
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    role: str
    is_verified: bool = Field(..., alias="isVerified")


class UserResponse(UserSummary):
    """Full user projection (never includes the stored refresh token)."""
    is_active: bool = Field(..., alias="isActive")
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    last_login: Optional[str] = Field(None, alias="lastLogin")


class TokenResponse(CamelModel):
    """Token pair with the user it was issued for."""
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    token_type: str = Field("bearer", alias="tokenType")
    expires_in: int = Field(..., alias="expiresIn")
    user: UserSummary


class LoginResponse(TokenResponse):
    """Token pair with the full user projection."""
    user: UserResponse


class SessionResponse(CamelModel):
    """Current session."""
    valid: bool = True
    user: UserSummary


def user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.user_id,
        phone_number=user.phone,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_verified=user.is_verified
    )


def user_response(user: User) -> UserResponse:
    return UserResponse(
        **user_summary(user).model_dump(),
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
        last_login=user.last_login
    )


# Shared handlers (also used by the partner /otp routes)

def send_otp(services: Services, phone: str) -> OTPSentResponse:
    result = services.user_auth.request_otp(phone)
    if not result.success:
        raise error_for(result, development=services.config.is_development)

    return OTPSentResponse(message="OTP sent successfully", dev_code=result.code)


def verify_otp(services: Services, phone: str, code: str) -> LoginResponse:
    result: AuthResult = services.user_auth.verify_otp(phone, code)
    if not result.success:
        raise error_for(result, development=services.config.is_development)

    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        user=user_response(result.user)
    )


# Endpoints

@router.post("/otp/request", response_model=OTPSentResponse, response_model_exclude_none=True)
def request_otp(request: OTPRequest, services: ServicesDep):
    """
    Send a one-time passcode to a phone number.

    Creates the user on first contact. Any previous passcode for the
    number is replaced.
    """
    return send_otp(services, request.phone)


@router.post("/otp/verify", response_model=LoginResponse)
def verify_otp_login(request: OTPVerifyRequest, services: ServicesDep):
    """
    Verify a passcode and log in.

    Returns an access/refresh token pair on success. Wrong codes report
    attemptsRemaining; the passcode is discarded once attempts run out.
    """
    return verify_otp(services, request.phone, request.code)


@router.post("/token/refresh", response_model=TokenResponse)
def refresh_token(request: RefreshRequest, services: ServicesDep):
    """
    Exchange a refresh token for a new token pair.

    The submitted refresh token is invalidated by this call.
    """
    result = services.user_auth.refresh_token(request.refresh_token)

    if not result.success:
        raise error_for(result, development=services.config.is_development)

    return TokenResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        user=user_summary(result.user)
    )


@router.get("/session", response_model=SessionResponse)
def get_session(current_user: CurrentUser):
    """
    Check that the current access token is valid.

    Requires valid access token.
    """
    return SessionResponse(valid=True, user=user_summary(current_user))
