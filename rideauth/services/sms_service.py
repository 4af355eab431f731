"""
SMS gateways.

Delivers passcode messages through an SMS provider. Every gateway honours
the same contract: `send(to, message)` returns an SMSResult and never raises
for delivery problems, so callers only have to check `success`.
"""

import logging
from typing import Any, Optional
from dataclasses import dataclass

import httpx
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ..config import SMSConfig
from ..auth.phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass
class SMSResult:
    """Outcome of a single SMS dispatch."""
    success: bool
    error: Optional[str] = None
    sid: Optional[str] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"success": self.success}
        if self.sid:
            result["sid"] = self.sid
        if self.error:
            result["error"] = self.error
        return result


class SMSGateway:
    """Base class for SMS delivery."""

    name = "base"

    def send(self, to: str, message: str) -> SMSResult:
        raise NotImplementedError

    def close(self):
        """Release any network resources."""


class ConsoleSMSGateway(SMSGateway):
    """Logs messages instead of sending them. For local development only."""

    name = "console"

    def send(self, to: str, message: str) -> SMSResult:
        logger.warning(f"[console SMS] to={mask_phone(to)} message={message!r}")
        return SMSResult(success=True, sid="console")


class HTTPSMSGateway(SMSGateway):
    """
    HTTP SMS provider client.

    Supports SMSlenz.lk (credentials in the JSON body) and a generic
    provider format (credentials in headers, configurable endpoint).
    """

    def __init__(self, config: SMSConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.name = config.provider
        self._client = client or httpx.Client(timeout=config.timeout_seconds)

    def _missing_settings(self) -> list[str]:
        missing = []
        if not self.config.base_url:
            missing.append("SMS_API_BASE_URL")
        if not self.config.api_key:
            missing.append("SMS_API_KEY")
        if not self.config.user_id:
            missing.append("SMS_USER_ID")
        if self.config.provider == "smslenz" and not self.config.sender_id:
            missing.append("SMS_SENDER_ID")
        return missing

    def _build_request(self, to: str, message: str) -> tuple[str, dict, dict]:
        """Return (url, headers, payload) for the configured provider."""
        base = self.config.base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}

        if self.config.provider == "smslenz":
            url = f"{base}/api/send-sms"
            payload = {
                "user_id": self.config.user_id,
                "api_key": self.config.api_key,
                "sender_id": self.config.sender_id,
                "contact": to,
                "message": message,
            }
            return url, headers, payload

        endpoint = self.config.endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        url = f"{base}{endpoint}"

        auth_type = self.config.auth_type
        if auth_type == "bearer":
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        elif auth_type == "apikey":
            headers["x-api-key"] = self.config.api_key
        elif auth_type == "header":
            headers[self.config.auth_header] = self.config.api_key

        if self.config.include_user_id:
            headers["x-user-id"] = self.config.user_id

        payload = {"to": to, "message": message}
        if self.config.from_number:
            payload["from"] = self.config.from_number
        if self.config.sender_id:
            payload["senderId"] = self.config.sender_id

        return url, headers, payload

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data)
        return str(data)

    def send(self, to: str, message: str) -> SMSResult:
        missing = self._missing_settings()
        if missing:
            error = f"SMS API config missing: {', '.join(missing)}"
            logger.error(error)
            return SMSResult(success=False, error=error)

        url, headers, payload = self._build_request(to, message)
        logger.debug(f"Sending SMS via {self.name} to {mask_phone(to)} ({len(message)} chars)")

        try:
            response = self._client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"SMS provider timed out after {self.config.timeout_seconds}s: {e}")
            return SMSResult(success=False, error=f"SMS provider timed out: {e}")
        except httpx.RequestError as e:
            logger.error(f"SMS provider unreachable: {e}")
            return SMSResult(success=False, error=f"SMS provider unreachable: {e}")

        if response.is_success:
            logger.info(f"SMS sent to {mask_phone(to)}")
            return SMSResult(success=True)

        error_msg = self._error_message(response)
        if response.status_code < 500:
            error = f"SMS provider rejected request: {error_msg}"
        else:
            error = f"SMS send failed ({response.status_code}): {error_msg}"
        logger.error(error)
        return SMSResult(success=False, error=error)

    def close(self):
        """Close the HTTP client."""
        self._client.close()


class TwilioSMSGateway(SMSGateway):
    """Service for sending SMS via Twilio."""

    name = "twilio"

    def __init__(self, config: SMSConfig, client: Optional[Client] = None):
        self.from_number = config.twilio_phone_number
        self._client = client
        if self._client is None and config.twilio_account_sid and config.twilio_auth_token:
            self._client = Client(
                config.twilio_account_sid,
                config.twilio_auth_token,
                http_client=TwilioHttpClient(timeout=config.timeout_seconds)
            )
            logger.info("Twilio SMS gateway initialized")

    def is_configured(self) -> bool:
        """Check if Twilio is properly configured."""
        return self._client is not None and bool(self.from_number)

    def send(self, to: str, message: str) -> SMSResult:
        if not self.is_configured():
            logger.warning("Twilio not configured, cannot send SMS")
            return SMSResult(success=False, error="Twilio not configured")

        try:
            msg = self._client.messages.create(
                body=message,
                from_=self.from_number,
                to=to
            )
            logger.info(f"SMS sent successfully to {mask_phone(to)}: {msg.sid}")
            return SMSResult(success=True, sid=msg.sid)
        except Exception as e:
            logger.error(f"SMS send failed to {mask_phone(to)}: {e}")
            return SMSResult(success=False, error=str(e))


def create_sms_gateway(config: SMSConfig) -> SMSGateway:
    """Build the gateway selected by SMS_PROVIDER."""
    provider = config.provider
    if provider == "twilio":
        return TwilioSMSGateway(config)
    if provider == "console":
        return ConsoleSMSGateway()
    if provider in ("smslenz", "generic"):
        return HTTPSMSGateway(config)
    raise ValueError(f"Unknown SMS provider: {provider}")
