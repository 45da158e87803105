"""
Account registration and sign-in.

Usernames are unique without regard to case; the lower-cased form is what
the unique index and lookups use.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smsrelay.errors import ErrorKind, ServiceError
from smsrelay.utils import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
USERNAME_TAKEN = "Username has already been taken"


@dataclass(frozen=True)
class AccountRecord:
    id: str
    username: str


class AccountStore:
    def __init__(self, db: Session):
        self.db = db

    def register(self, username: Optional[str], password: Optional[str]) -> Tuple[Optional[AccountRecord], Optional[ServiceError]]:
        from smsrelay.models import Account

        username = (username or "").strip()
        password = password or ""

        errors = []
        if not username:
            errors.append("Username can't be blank")
        elif self._find(username) is not None:
            errors.append(USERNAME_TAKEN)
        if not password:
            errors.append("Password can't be blank")
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password is too short (minimum is {MIN_PASSWORD_LENGTH} characters)")
        if errors:
            logger.error(f"User registration failed: {', '.join(errors)}")
            return None, ServiceError(ErrorKind.VALIDATION, ", ".join(errors))

        account = Account(
            id=str(uuid.uuid4()),
            username=username,
            username_key=username.lower(),
            password_hash=hash_password(password),
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.db.add(account)
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name
            self.db.rollback()
            return None, ServiceError(ErrorKind.VALIDATION, USERNAME_TAKEN)

        logger.info(f"Account registered: {account.id}")
        return AccountRecord(id=account.id, username=account.username), None

    def authenticate(self, username: Optional[str], password: Optional[str]) -> Optional[AccountRecord]:
        if not username or not password:
            return None
        account = self._find(username.strip())
        if account is None or not verify_password(password, account.password_hash):
            logger.info("Authentication failed")
            return None
        return AccountRecord(id=account.id, username=account.username)

    def get(self, account_id: str) -> Optional[AccountRecord]:
        from smsrelay.models import Account

        account = self.db.query(Account).filter(Account.id == account_id).first()
        if account is None:
            return None
        return AccountRecord(id=account.id, username=account.username)

    def _find(self, username: str):
        from smsrelay.models import Account

        return self.db.query(Account).filter(Account.username_key == username.lower()).first()
