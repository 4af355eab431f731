"""
Passcode service.

Issues one-time passcodes, dispatches them by SMS and checks submitted
codes against the expiry and attempt-limit policy.
"""

import hmac
import logging
import secrets
import time
from typing import Callable, Optional
from dataclasses import dataclass

from ..auth import PasscodeStore, PasscodeRecord, UserStore, normalize_phone, mask_phone
from ..config import OTPConfig
from .errors import AuthFailure
from .sms_service import SMSGateway

logger = logging.getLogger(__name__)


@dataclass
class PasscodeResult:
    """Result of a passcode request or verification."""
    success: bool
    phone: Optional[str] = None
    reason: Optional[AuthFailure] = None
    error: Optional[str] = None  # Extra detail, e.g. the gateway's error
    attempts_remaining: Optional[int] = None
    code: Optional[str] = None  # Only set when OTPConfig.expose_code is on

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None


class PasscodeService:
    """
    Generates, delivers and verifies one-time passcodes.

    Handles:
    - Code generation and record upsert
    - SMS dispatch through the configured gateway
    - Verification with expiry and attempt limiting
    - Purging of expired records
    """

    def __init__(
        self,
        store: PasscodeStore,
        users: UserStore,
        gateway: SMSGateway,
        config: OTPConfig,
        clock: Optional[Callable[[], float]] = None
    ):
        self.store = store
        self.users = users
        self.gateway = gateway
        self.config = config
        self._clock = clock or time.time

    def generate_code(self) -> str:
        """Random numeric code of the configured length, leading zeros allowed."""
        return "".join(secrets.choice("0123456789") for _ in range(self.config.length))

    def _message(self, code: str) -> str:
        minutes = max(1, round(self.config.ttl_seconds / 60))
        unit = "minute" if minutes == 1 else "minutes"
        return f"Your OTP code is {code}. It expires in {minutes} {unit}."

    def request_passcode(self, phone: str) -> PasscodeResult:
        """
        Create (or replace) the passcode for a phone and send it by SMS.

        Args:
            phone: Phone number in international format

        Returns:
            PasscodeResult; on gateway failure the record is kept so a new
            request simply supersedes it
        """
        normalized = normalize_phone(phone)
        if not normalized:
            return PasscodeResult(success=False, reason=AuthFailure.VALIDATION_ERROR)

        self.users.get_or_create(normalized)

        now = self._clock()
        code = self.generate_code()
        self.store.put(PasscodeRecord(
            phone=normalized,
            code=code,
            expires_at=now + self.config.ttl_seconds,
            attempts=0,
            created_at=now
        ))
        logger.info(f"Passcode issued for {mask_phone(normalized)}")

        sms = self.gateway.send(normalized, self._message(code))
        if not sms.success:
            logger.error(f"Passcode delivery failed for {mask_phone(normalized)}: {sms.error}")
            return PasscodeResult(
                success=False,
                phone=normalized,
                reason=AuthFailure.GATEWAY_FAILURE,
                error=sms.error
            )

        exposed = code if self.config.expose_code else None
        return PasscodeResult(success=True, phone=normalized, code=exposed)

    def verify_passcode(self, phone: str, code: str) -> PasscodeResult:
        """
        Check a submitted code and consume the record on success.

        The whole check runs as one atomic store operation. Outcomes, in
        order: not_found, expired (record deleted), invalid_code with
        attempts_remaining, too_many_attempts (record deleted), success
        (record deleted).
        """
        normalized = normalize_phone(phone)
        if not normalized or not code:
            return PasscodeResult(success=False, reason=AuthFailure.VALIDATION_ERROR)

        now = self._clock()
        max_attempts = self.config.max_attempts

        def check(record: Optional[PasscodeRecord]):
            if record is None:
                return None, PasscodeResult(success=False, phone=normalized, reason=AuthFailure.NOT_FOUND)

            if record.is_expired(now):
                return None, PasscodeResult(success=False, phone=normalized, reason=AuthFailure.EXPIRED)

            if not hmac.compare_digest(record.code.encode(), code.encode()):
                record.attempts += 1
                if record.attempts >= max_attempts:
                    return None, PasscodeResult(
                        success=False, phone=normalized, reason=AuthFailure.TOO_MANY_ATTEMPTS
                    )
                return record, PasscodeResult(
                    success=False,
                    phone=normalized,
                    reason=AuthFailure.INVALID_CODE,
                    attempts_remaining=max_attempts - record.attempts
                )

            return None, PasscodeResult(success=True, phone=normalized)

        result = self.store.modify(normalized, check)

        if result.success:
            logger.info(f"Passcode verified for {mask_phone(normalized)}")
        else:
            logger.info(f"Passcode check failed for {mask_phone(normalized)}: {result.reason.value}")
        return result

    def purge_expired(self) -> int:
        """Remove expired passcode records. Returns the number removed."""
        return self.store.purge_expired(self._clock())
