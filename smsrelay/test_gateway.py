"""
Tests for the SMS gateway adapters. No network: the Twilio client is faked.
"""

import re
from types import SimpleNamespace

from twilio.base.exceptions import TwilioRestException

from smsrelay.config import GatewayConfig
from smsrelay.gateway import StubGateway, TwilioGateway, build_gateway

CONFIG = GatewayConfig(
    mode="live",
    account_sid="AC123",
    auth_token="token",
    from_number="+15550000000",
)


class FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, body, to, from_):
        self.created.append({"body": body, "to": to, "from_": from_})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(sid="SM" + "a" * 32)


class FakeClientFactory:
    def __init__(self, error=None):
        self.messages = FakeMessages(error)
        self.credentials = []

    def __call__(self, account_sid, auth_token):
        self.credentials.append((account_sid, auth_token))
        return SimpleNamespace(messages=self.messages)


def test_stub_succeeds_with_sid_shaped_id():
    result = StubGateway(CONFIG).send("+15551234567", "hello")

    assert result.success
    assert re.fullmatch(r"SM[0-9a-f]{32}", result.provider_message_id)
    assert result.error_detail is None


def test_live_sends_once():
    factory = FakeClientFactory()

    result = TwilioGateway(CONFIG, client_factory=factory).send("+15551234567", "hello")

    assert result.success
    assert result.provider_message_id == "SM" + "a" * 32
    assert factory.credentials == [("AC123", "token")]
    assert factory.messages.created == [
        {"body": "hello", "to": "+15551234567", "from_": "+15550000000"}
    ]


def test_unconfigured_stub_fails_fast():
    for missing in ("account_sid", "auth_token", "from_number"):
        values = {
            "mode": "stub",
            "account_sid": "AC123",
            "auth_token": "token",
            "from_number": "+15550000000",
        }
        values[missing] = None

        result = build_gateway(GatewayConfig(**values)).send("+15551234567", "hello")

        assert not result.success
        assert result.error_detail == "SMS gateway not configured"
        assert result.provider_message_id is None


def test_missing_credentials_fail_fast():
    for missing in ("account_sid", "auth_token", "from_number"):
        values = {
            "mode": "live",
            "account_sid": "AC123",
            "auth_token": "token",
            "from_number": "+15550000000",
        }
        values[missing] = None
        factory = FakeClientFactory()

        result = TwilioGateway(GatewayConfig(**values), client_factory=factory).send("+15551234567", "hello")

        assert not result.success
        assert result.error_detail == "SMS gateway not configured"
        assert factory.credentials == []


def test_provider_error_reported():
    error = TwilioRestException(400, "https://api.twilio.com", msg="The 'To' number is not valid")
    factory = FakeClientFactory(error=error)

    result = TwilioGateway(CONFIG, client_factory=factory).send("+15551234567", "hello")

    assert not result.success
    assert result.error_detail == "The 'To' number is not valid"
    assert len(factory.messages.created) == 1


def test_transport_error_reported_generically():
    factory = FakeClientFactory(error=ConnectionError("socket closed"))

    result = TwilioGateway(CONFIG, client_factory=factory).send("+15551234567", "hello")

    assert not result.success
    assert result.error_detail == "Failed to send SMS"


def test_build_gateway_by_mode():
    assert isinstance(build_gateway(GatewayConfig(mode="stub")), StubGateway)
    assert isinstance(build_gateway(CONFIG), TwilioGateway)


def test_config_from_settings():
    from smsrelay.config import Settings

    config = GatewayConfig.from_settings(Settings(
        SMS_GATEWAY_MODE="live",
        TWILIO_ACCOUNT_SID="AC1",
        TWILIO_AUTH_TOKEN="t",
        TWILIO_PHONE_NUMBER="+15550000000",
    ))

    assert config.is_complete
    assert config.mode == "live"
