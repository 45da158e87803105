"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any app import, and the
settings cache is cleared so they take effect.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_smsrelay.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SMS_GATEWAY_MODE", "stub")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
# The stub gateway refuses to send without credentials too
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550000000")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

# Clear settings cache before any app imports to ensure test env vars are used
from smsrelay.config import Settings, get_settings  # noqa: E402
get_settings.cache_clear()

from smsrelay.gateway import DeliveryResult  # noqa: E402
from smsrelay.main import create_app  # noqa: E402
from smsrelay.storage import Base, engine  # noqa: E402


class FailingGateway:
    """Gateway that reports every send as failed."""

    def __init__(self, error_detail: str = "Twilio error: unreachable"):
        self.error_detail = error_detail
        self.calls = []

    def send(self, phone_number: str, content: str) -> DeliveryResult:
        self.calls.append((phone_number, content))
        return DeliveryResult(success=False, error_detail=self.error_detail)


class RecordingGateway:
    """Gateway that accepts every send and remembers it."""

    def __init__(self):
        self.calls = []

    def send(self, phone_number: str, content: str) -> DeliveryResult:
        self.calls.append((phone_number, content))
        return DeliveryResult(success=True, provider_message_id=f"SM{len(self.calls):032d}")


def _make_client(**overrides):
    return TestClient(create_app(Settings(**overrides)))


@pytest.fixture
def make_client():
    """Factory for a TestClient around an app built from Settings(**overrides)."""
    return _make_client


@pytest.fixture
def recording_gateway():
    return RecordingGateway()


@pytest.fixture
def failing_gateway():
    return FailingGateway()


@pytest.fixture(scope="function")
def fresh_db():
    """Fresh tables for each test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(fresh_db, recording_gateway):
    """Session-scoped (anonymous cookie) app with a recording gateway."""
    with _make_client(OWNER_SCOPE="session") as test_client:
        test_client.app.state.gateway = recording_gateway
        yield test_client


@pytest.fixture(scope="function")
def account_client(fresh_db, recording_gateway):
    """Account-scoped app with a recording gateway."""
    with _make_client(OWNER_SCOPE="account") as test_client:
        test_client.app.state.gateway = recording_gateway
        yield test_client
