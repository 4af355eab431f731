"""
Services layer for the ride auth service.

Business logic for passwordless phone login, reusable from the API and
from admin scripts.
"""

from typing import Optional

from .base import ServiceContext
from .errors import AuthFailure
from .passcode_service import PasscodeService, PasscodeResult
from .sms_service import (
    SMSGateway,
    SMSResult,
    HTTPSMSGateway,
    TwilioSMSGateway,
    ConsoleSMSGateway,
    create_sms_gateway,
)
from .user_auth_service import UserAuthService, AuthTokens, AuthResult

__all__ = [
    # Base
    "ServiceContext",
    # Services
    "PasscodeService",
    "UserAuthService",
    # Gateways
    "SMSGateway",
    "HTTPSMSGateway",
    "TwilioSMSGateway",
    "ConsoleSMSGateway",
    "create_sms_gateway",
    # Data classes
    "AuthFailure",
    "AuthTokens",
    "AuthResult",
    "PasscodeResult",
    "SMSResult",
]


def create_services(context: Optional[ServiceContext] = None):
    """
    Factory function to create all services with proper dependencies.

    Args:
        context: Optional ServiceContext (creates one if not provided)

    Returns:
        Tuple of (context, passcodes, user_auth)
    """
    if context is None:
        context = ServiceContext.create()

    passcodes = PasscodeService(
        store=context.passcode_store,
        users=context.users,
        gateway=context.gateway,
        config=context.config.otp,
        clock=context.clock
    )
    user_auth = UserAuthService(context.tokens, context.users, passcodes)

    return context, passcodes, user_auth
