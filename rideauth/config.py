"""Configuration module for the ride auth service."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

DEFAULT_ACCESS_SECRET = "dev_secret"
DEFAULT_REFRESH_SECRET = "dev_refresh"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class OTPConfig:
    """One-time passcode policy."""
    ttl_ms: int = field(default_factory=lambda: int(os.getenv("OTP_TTL_MS", "300000")))
    max_attempts: int = field(default_factory=lambda: int(os.getenv("OTP_MAX_ATTEMPTS", "5")))
    length: int = field(default_factory=lambda: int(os.getenv("OTP_LENGTH", "6")))

    # Test mode: echo the generated code back to the caller as devCode
    expose_code: bool = field(default_factory=lambda: _env_bool("OTP_EXPOSE_CODE"))

    cleanup_interval_seconds: int = field(
        default_factory=lambda: int(os.getenv("OTP_CLEANUP_INTERVAL_SECONDS", "60"))
    )

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_ms / 1000


@dataclass
class JWTConfig:
    """Signing secrets and lifetimes for access and refresh tokens."""
    access_secret: str = field(default_factory=lambda: os.getenv("JWT_SECRET", DEFAULT_ACCESS_SECRET))
    refresh_secret: str = field(default_factory=lambda: os.getenv("JWT_REFRESH_SECRET", DEFAULT_REFRESH_SECRET))
    access_expire_seconds: int = field(
        default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_SECONDS", str(86400 * 7)))
    )
    refresh_expire_seconds: int = field(
        default_factory=lambda: int(os.getenv("REFRESH_TOKEN_EXPIRE_SECONDS", str(86400 * 30)))
    )


@dataclass
class SMSConfig:
    """SMS provider configuration."""
    provider: str = field(default_factory=lambda: os.getenv("SMS_PROVIDER", "smslenz").lower())
    base_url: str = field(default_factory=lambda: os.getenv("SMS_API_BASE_URL", ""))
    api_key: str = field(default_factory=lambda: os.getenv("SMS_API_KEY", ""))
    user_id: str = field(default_factory=lambda: os.getenv("SMS_USER_ID", ""))
    sender_id: str = field(default_factory=lambda: os.getenv("SMS_SENDER_ID", "SMSlenzDEMO"))

    # Generic provider only
    endpoint: str = field(default_factory=lambda: os.getenv("SMS_API_ENDPOINT", "/messages"))
    auth_type: str = field(default_factory=lambda: os.getenv("SMS_AUTH_TYPE", "bearer"))
    auth_header: str = field(default_factory=lambda: os.getenv("SMS_AUTH_HEADER", "Authorization"))
    from_number: str = field(default_factory=lambda: os.getenv("SMS_FROM", ""))
    include_user_id: bool = field(default_factory=lambda: _env_bool("SMS_INCLUDE_USER_ID", "true"))

    timeout_ms: int = field(default_factory=lambda: int(os.getenv("SMS_TIMEOUT_MS", "10000")))

    # Twilio provider
    twilio_account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    twilio_auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    twilio_phone_number: str = field(default_factory=lambda: os.getenv("TWILIO_PHONE_NUMBER", ""))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass
class Config:
    """Main configuration container."""
    otp: OTPConfig = field(default_factory=OTPConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)
    sms: SMSConfig = field(default_factory=SMSConfig)

    # Partner backends calling /otp/* must present this key
    api_key: str = field(default_factory=lambda: os.getenv("API_KEY", ""))

    data_dir: Path = field(default_factory=lambda: Path(os.getenv("DATA_DIR", "data")))
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "production"))

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config()
