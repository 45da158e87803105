"""
SMS gateway adapters.

Both adapters expose send(phone_number, content) -> DeliveryResult and never
raise for provider or transport failures; those come back as
success=False with a readable error_detail. Each call is a single attempt.
Without all three credentials every send fails before any other work.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from smsrelay.config import GatewayConfig
from smsrelay.utils import mask_phone_number

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "SMS gateway not configured"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    provider_message_id: Optional[str] = None
    error_detail: Optional[str] = None


class ConfiguredGateway:
    def __init__(self, config: GatewayConfig):
        self.config = config

    def send(self, phone_number: str, content: str) -> DeliveryResult:
        if not self.config.is_complete:
            logger.error("Twilio credentials are not configured")
            return DeliveryResult(success=False, error_detail=NOT_CONFIGURED)
        return self._send(phone_number, content)

    def _send(self, phone_number: str, content: str) -> DeliveryResult:
        raise NotImplementedError


class StubGateway(ConfiguredGateway):
    """Gateway for development and tests: no network I/O, always succeeds."""

    def _send(self, phone_number: str, content: str) -> DeliveryResult:
        # Same shape as a Twilio message SID
        sid = "SM" + uuid.uuid4().hex
        logger.info(f"Stub SMS accepted: {sid} to {mask_phone_number(phone_number)} ({len(content)} chars)")
        return DeliveryResult(success=True, provider_message_id=sid)


class TwilioGateway(ConfiguredGateway):
    """
    Gateway that relays through the Twilio REST API.

    client_factory is called with (account_sid, auth_token) on every send and
    defaults to twilio.rest.Client.
    """

    def __init__(self, config: GatewayConfig, client_factory: Callable[[str, str], Client] = Client):
        super().__init__(config)
        self.client_factory = client_factory

    def _send(self, phone_number: str, content: str) -> DeliveryResult:
        try:
            client = self.client_factory(self.config.account_sid, self.config.auth_token)
            message = client.messages.create(
                body=content,
                to=phone_number,
                from_=self.config.from_number,
            )
            logger.info(f"SMS sent via Twilio: {message.sid} to {mask_phone_number(phone_number)}")
            return DeliveryResult(success=True, provider_message_id=message.sid)
        except TwilioRestException as e:
            logger.error(f"Twilio error: {e.msg}")
            return DeliveryResult(success=False, error_detail=str(e.msg))
        except Exception as e:
            logger.error(f"Failed to send SMS: {e}")
            return DeliveryResult(success=False, error_detail="Failed to send SMS")


def build_gateway(config: GatewayConfig) -> ConfiguredGateway:
    """Pick the adapter for the configured mode."""
    if config.mode == "live":
        logger.info("Using Twilio SMS gateway")
        return TwilioGateway(config)
    logger.info("Using stub SMS gateway")
    return StubGateway(config)
