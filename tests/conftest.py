"""
Pytest configuration and shared fixtures.

This module provides common fixtures for testing:
- Deterministic clock
- Configuration and temporary data directory
- Recording SMS gateway
- Stores, token issuer and services
- API client
"""

import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Generator, List, Optional, Tuple
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before imports
os.environ["JWT_SECRET"] = "test_access_secret_for_testing_only_32bytes!"
os.environ["JWT_REFRESH_SECRET"] = "test_refresh_secret_for_testing_only_32bytes!"
os.environ["API_KEY"] = "test_partner_api_key"
os.environ["SMS_PROVIDER"] = "console"
os.environ["ENVIRONMENT"] = "test"

from rideauth.config import Config, OTPConfig, JWTConfig, SMSConfig
from rideauth.auth import PasscodeStore, TokenIssuer, UserStore
from rideauth.services import SMSGateway, SMSResult, ServiceContext


# =============================================================================
# Configuration
# =============================================================================

START_TIME = 1_750_000_000.0


@pytest.fixture(scope="session")
def test_config():
    """Test configuration values."""
    return {
        "access_secret": "test_access_secret_for_testing_only_32bytes!",
        "refresh_secret": "test_refresh_secret_for_testing_only_32bytes!",
        "api_key": "test_partner_api_key",
        "test_phone": "+94771234567",
        "other_phone": "+94777654321",
        "ttl_seconds": 300,
        "max_attempts": 5,
        "access_expire_seconds": 86400 * 7,
        "refresh_expire_seconds": 86400 * 30,
    }


class FakeClock:
    """Callable epoch clock that only moves when told to."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def jwt_config(test_config) -> JWTConfig:
    return JWTConfig(
        access_secret=test_config["access_secret"],
        refresh_secret=test_config["refresh_secret"],
        access_expire_seconds=test_config["access_expire_seconds"],
        refresh_expire_seconds=test_config["refresh_expire_seconds"]
    )


@pytest.fixture
def otp_config(test_config) -> OTPConfig:
    return OTPConfig(
        ttl_ms=test_config["ttl_seconds"] * 1000,
        max_attempts=test_config["max_attempts"],
        length=6,
        expose_code=False,
        cleanup_interval_seconds=60
    )


@pytest.fixture
def app_config(test_config, jwt_config, otp_config, temp_data_dir) -> Config:
    return Config(
        otp=otp_config,
        jwt=jwt_config,
        sms=SMSConfig(provider="console"),
        api_key=test_config["api_key"],
        data_dir=temp_data_dir,
        environment="test"
    )


# =============================================================================
# SMS Gateway
# =============================================================================

class RecordingGateway(SMSGateway):
    """Gateway double that records messages and can be told to fail."""

    name = "recording"

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.fail_with: Optional[str] = None

    def send(self, to: str, message: str) -> SMSResult:
        self.sent.append((to, message))
        if self.fail_with:
            return SMSResult(success=False, error=self.fail_with)
        return SMSResult(success=True, sid=f"msg-{len(self.sent)}")

    @property
    def last_code(self) -> Optional[str]:
        if not self.sent:
            return None
        match = re.search(r"\b(\d{4,8})\b", self.sent[-1][1])
        return match.group(1) if match else None


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


# =============================================================================
# Stores, Tokens and Services
# =============================================================================

@pytest.fixture
def context(app_config, gateway, clock) -> ServiceContext:
    return ServiceContext.create(config=app_config, gateway=gateway, clock=clock)


@pytest.fixture
def user_store(context) -> UserStore:
    """The UserStore the services use, backed by the temporary directory."""
    return context.users


@pytest.fixture
def passcode_store(context) -> PasscodeStore:
    return context.passcode_store


@pytest.fixture
def token_issuer(context) -> TokenIssuer:
    return context.tokens


@pytest.fixture
def services(context):
    """Fully wired services container, as used by the API."""
    from api.deps import build_services
    return build_services(context)


@pytest.fixture
def passcode_service(services):
    return services.passcodes


@pytest.fixture
def user_auth(services):
    return services.user_auth


@pytest.fixture
def fixed_code(services, monkeypatch) -> str:
    """Make every generated passcode a known value."""
    code = "482913"
    monkeypatch.setattr(services.passcodes, "generate_code", lambda: code)
    return code


@pytest.fixture
def logged_in(user_auth, fixed_code, test_config):
    """Run a full OTP login for the test phone and return the AuthResult."""
    user_auth.request_otp(test_config["test_phone"])
    result = user_auth.verify_otp(test_config["test_phone"], fixed_code)
    assert result.success
    return result


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_app():
    """Create FastAPI app for testing."""
    from api.main import app
    return app


@pytest.fixture
def api_client(api_app, services) -> Generator[TestClient, None, None]:
    """Test client with the services singleton replaced by the test services."""
    with patch("api.deps.get_services", return_value=services):
        yield TestClient(api_app)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as API endpoint test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
