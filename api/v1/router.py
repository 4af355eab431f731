"""
API v1 router.

Aggregates all v1 endpoints.
"""

from fastapi import APIRouter

from . import auth, otp, system

router = APIRouter()

# Include all route modules
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(otp.router, prefix="/otp", tags=["Partner OTP"])
router.include_router(system.router, prefix="/system", tags=["System"])
