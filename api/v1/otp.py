"""
Partner OTP endpoints.

Same passcode flow as /auth/otp/*, for trusted backends that call on
behalf of their users. Requires x-api-key and x-user-id headers.
"""

import logging

from fastapi import APIRouter

from rideauth.auth import mask_phone

from ..deps import ServicesDep, PartnerId
from .auth import (
    OTPRequest,
    OTPVerifyRequest,
    OTPSentResponse,
    LoginResponse,
    send_otp,
    verify_otp,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send", response_model=OTPSentResponse, response_model_exclude_none=True)
def partner_send_otp(request: OTPRequest, partner_id: PartnerId, services: ServicesDep):
    """Send a one-time passcode via SMS."""
    logger.info(f"Partner {partner_id} requested OTP for {mask_phone(request.phone)}")
    return send_otp(services, request.phone)


@router.post("/verify", response_model=LoginResponse)
def partner_verify_otp(request: OTPVerifyRequest, partner_id: PartnerId, services: ServicesDep):
    """Verify a passcode and issue tokens."""
    logger.info(f"Partner {partner_id} verifying OTP for {mask_phone(request.phone)}")
    return verify_otp(services, request.phone, request.code)
