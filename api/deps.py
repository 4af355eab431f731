"""
API dependencies.

Provides dependency injection for services, authentication and role checks.
"""

import logging
import secrets
from typing import Optional, Annotated
from dataclasses import dataclass

from fastapi import Depends, Header, Request, status

from rideauth.config import load_config, Config
from rideauth.services import (
    AuthFailure,
    PasscodeService,
    ServiceContext,
    UserAuthService,
    create_services,
)
from rideauth.auth import User, UserStore

from .errors import AuthAPIError, error_for

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Container for all services."""
    config: Config
    context: ServiceContext
    passcodes: PasscodeService
    user_auth: UserAuthService
    users: UserStore


# Global services instance (singleton)
_services: Optional[Services] = None


def build_services(context: ServiceContext) -> Services:
    """Wire a Services container around an existing context."""
    context, passcodes, user_auth = create_services(context)
    return Services(
        config=context.config,
        context=context,
        passcodes=passcodes,
        user_auth=user_auth,
        users=context.users
    )


def get_services() -> Services:
    """
    Get or create the services singleton.

    This initializes all services on first call.
    """
    global _services

    if _services is None:
        logger.info("Initializing services...")
        _services = build_services(ServiceContext.create(config=load_config()))
        logger.info("Services initialized successfully")

    return _services


def close_services():
    """Close and cleanup services."""
    global _services
    if _services:
        _services.context.close()
        _services = None
        logger.info("Services closed")


# Dependency for getting services
def services_dep() -> Services:
    """FastAPI dependency for services."""
    return get_services()


ServicesDep = Annotated[Services, Depends(services_dep)]


# Authentication dependencies

def get_current_user(
    request: Request,
    services: ServicesDep,
    authorization: Annotated[Optional[str], Header()] = None
) -> User:
    """
    Resolve the user from the Bearer access token (required).

    Raises 401 with a distinct reason for missing, expired, malformed or
    wrong-kind tokens, unknown users and deactivated accounts. The user is
    also attached to request.state for downstream handlers.
    """
    result = services.user_auth.authenticate(authorization)
    if not result.success:
        raise error_for(result, development=services.config.is_development)

    request.state.user = result.user
    return result.user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.get("/rides", dependencies=[Depends(require_roles("family", "elder"))])
    """
    def check_role(user: CurrentUser) -> User:
        if user.role not in roles:
            raise AuthAPIError(
                status_code=status.HTTP_403_FORBIDDEN,
                reason=AuthFailure.FORBIDDEN,
                detail=f"This endpoint requires one of these roles: {', '.join(roles)}. Your role is {user.role}"
            )
        return user

    return check_role


# Partner backend authentication

def require_api_key(
    services: ServicesDep,
    x_api_key: Annotated[Optional[str], Header()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None
) -> str:
    """
    Validate the partner API key and caller id headers.

    Returns:
        The x-user-id of the calling partner
    """
    expected = services.config.api_key

    if not expected:
        if not services.config.is_development:
            logger.error("API_KEY not configured; rejecting partner request")
            raise AuthAPIError(status.HTTP_401_UNAUTHORIZED, AuthFailure.INVALID_API_KEY)
        logger.warning("No API_KEY configured - allowing partner request (dev mode)")
    elif not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise AuthAPIError(status.HTTP_401_UNAUTHORIZED, AuthFailure.INVALID_API_KEY)

    if not x_user_id:
        raise AuthAPIError(
            status.HTTP_400_BAD_REQUEST,
            AuthFailure.VALIDATION_ERROR,
            message="x-user-id header is required"
        )

    return x_user_id


PartnerId = Annotated[str, Depends(require_api_key)]
