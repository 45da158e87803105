"""
Owner resolution: who the current caller's messages belong to.

One deployment uses exactly one scheme, chosen by OWNER_SCOPE:
- session: an anonymous token kept in an http-only cookie, minted on first write
- account: the id of the account signed in through the server session
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response

from smsrelay.config import Settings
from smsrelay.errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "sms_session_id"
ACCOUNT_SESSION_KEY = "account_id"


@dataclass(frozen=True)
class OwnerResolution:
    owner_id: Optional[str] = None
    error: Optional[ServiceError] = None


class OwnerResolver:
    # Name of the owner field in serialized messages
    field_name = "owner_id"

    def resolve(self, request: Request, response: Response, create: bool = False) -> OwnerResolution:
        raise NotImplementedError


class SessionOwnerResolver(OwnerResolver):
    field_name = "session_id"

    def __init__(self, secure: bool = False, cookie_name: str = SESSION_COOKIE_NAME):
        self.secure = secure
        self.cookie_name = cookie_name

    def resolve(self, request: Request, response: Response, create: bool = False) -> OwnerResolution:
        token = request.cookies.get(self.cookie_name)
        if token:
            return OwnerResolution(owner_id=token)
        if not create:
            return OwnerResolution()

        token = str(uuid.uuid4())
        response.set_cookie(
            self.cookie_name,
            token,
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        logger.info("Issued new session token")
        return OwnerResolution(owner_id=token)


class AccountOwnerResolver(OwnerResolver):
    field_name = "user_id"

    def resolve(self, request: Request, response: Response, create: bool = False) -> OwnerResolution:
        account_id = request.session.get(ACCOUNT_SESSION_KEY)
        if not account_id:
            return OwnerResolution(error=ServiceError(ErrorKind.AUTH, "Not authenticated"))
        return OwnerResolution(owner_id=account_id)


def build_owner_resolver(settings: Settings) -> OwnerResolver:
    if settings.OWNER_SCOPE == "account":
        return AccountOwnerResolver()
    return SessionOwnerResolver(secure=settings.is_production)
