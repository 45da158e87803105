"""
Message submission and query services.

MessageSubmissionService runs one inbound message through
validate -> persist -> dispatch. The persisted record is the result; a
failed dispatch is logged and counted but never undoes the write or turns
the submission into a failure.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from smsrelay.errors import ErrorKind, ServiceError
from smsrelay.gateway import DeliveryResult
from smsrelay.metrics import record_dispatch_outcome, record_submission_outcome
from smsrelay.storage import MessageRecord, MessageStore

logger = logging.getLogger(__name__)

PHONE_NUMBER_PATTERN = re.compile(r"^\+?\d{2,15}$")


@dataclass(frozen=True)
class SubmissionResult:
    message: Optional[MessageRecord] = None
    error: Optional[ServiceError] = None
    delivery: Optional[DeliveryResult] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_submission(owner_id: Optional[str], phone_number: Optional[str], content: Optional[str]) -> List[str]:
    """Return every violated rule, in field order. Empty means valid."""
    errors = []

    if not phone_number or not phone_number.strip():
        errors.append("Phone number can't be blank")
    elif not PHONE_NUMBER_PATTERN.match(phone_number.strip()):
        errors.append("Phone number is invalid")

    if not content or not content.strip():
        errors.append("Content can't be blank")

    if not owner_id or not owner_id.strip():
        errors.append("Owner can't be blank")

    return errors


class MessageSubmissionService:
    def __init__(self, store: MessageStore, gateway):
        self.store = store
        self.gateway = gateway

    def submit(self, owner_id: Optional[str], phone_number: Optional[str], content: Optional[str]) -> SubmissionResult:
        violations = validate_submission(owner_id, phone_number, content)
        if violations:
            logger.info(f"Message rejected: {violations}")
            record_submission_outcome(ErrorKind.VALIDATION.value)
            return SubmissionResult(error=ServiceError(ErrorKind.VALIDATION, ", ".join(violations)))

        message = self.store.create(owner_id, phone_number.strip(), content)
        if message is None:
            record_submission_outcome(ErrorKind.PERSISTENCE.value)
            return SubmissionResult(error=ServiceError(ErrorKind.PERSISTENCE, "Failed to save message"))

        record_submission_outcome("created")
        delivery = self._dispatch(message)
        return SubmissionResult(message=message, delivery=delivery)

    def _dispatch(self, message: MessageRecord) -> DeliveryResult:
        try:
            delivery = self.gateway.send(message.phone_number, message.content)
        except Exception as e:
            logger.exception(f"Gateway raised while sending message {message.id}")
            delivery = DeliveryResult(success=False, error_detail=str(e) or e.__class__.__name__)

        if delivery.success:
            record_dispatch_outcome("sent")
            logger.info(f"Message {message.id} dispatched: {delivery.provider_message_id}")
        else:
            record_dispatch_outcome("failed")
            logger.warning(
                f"Message saved but SMS sending failed: {delivery.error_detail}",
                extra={
                    "message_id": message.id,
                    "error_kind": ErrorKind.GATEWAY.value,
                    "content_length": len(message.content),
                },
            )
        return delivery


class MessageQueryService:
    def __init__(self, store: MessageStore):
        self.store = store

    def list(self, owner_id: str) -> List[MessageRecord]:
        return self.store.list_by_owner(owner_id)
