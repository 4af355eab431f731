"""
Shared service context.

The ServiceContext holds the stores, token issuer and SMS gateway that the
services need, so the API and the admin scripts build them the same way.
"""

import logging
import time
from typing import Callable, Optional
from dataclasses import dataclass, field

from ..auth import PasscodeStore, TokenIssuer, UserStore
from ..auth.passcodes import PASSCODES_FILENAME
from ..auth.users import USERS_FILENAME
from ..config import Config, load_config
from .sms_service import SMSGateway, create_sms_gateway

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Dependency container for all auth services."""
    config: Config
    users: UserStore
    passcode_store: PasscodeStore
    tokens: TokenIssuer
    gateway: SMSGateway
    clock: Callable[[], float] = field(default=time.time, repr=False)

    @classmethod
    def create(
        cls,
        config: Optional[Config] = None,
        gateway: Optional[SMSGateway] = None,
        clock: Optional[Callable[[], float]] = None
    ) -> "ServiceContext":
        """
        Factory method to create a ServiceContext with all dependencies.

        Args:
            config: Optional config (loads from env if not provided)
            gateway: Optional SMS gateway (built from config.sms if not provided)
            clock: Optional epoch-seconds clock shared by every component

        Returns:
            Configured ServiceContext
        """
        cfg = config or load_config()
        clock = clock or time.time

        context = cls(
            config=cfg,
            users=UserStore(cfg.data_dir / USERS_FILENAME),
            passcode_store=PasscodeStore(cfg.data_dir / PASSCODES_FILENAME),
            tokens=TokenIssuer(cfg.jwt, clock=clock),
            gateway=gateway or create_sms_gateway(cfg.sms),
            clock=clock
        )
        logger.info(f"Service context ready (data dir: {cfg.data_dir}, SMS provider: {context.gateway.name})")
        return context

    def close(self):
        """Clean up resources."""
        self.gateway.close()
