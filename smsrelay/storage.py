import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generator, List, Optional, Protocol

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from smsrelay.config import settings
from smsrelay.utils import mask_phone_number

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from smsrelay import models  # noqa: F401

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

        if not inspect(engine).has_table("messages"):
            logger.error("Database schema not applied: 'messages' table not found")
            return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Message Store
# =============================================================================

@dataclass(frozen=True)
class MessageRecord:
    """A persisted message. Never mutated after creation."""
    id: str
    owner_id: str
    phone_number: str
    content: str
    created_at: datetime


class MessageStore(Protocol):
    def create(self, owner_id: str, phone_number: str, content: str) -> Optional[MessageRecord]:
        ...

    def list_by_owner(self, owner_id: str) -> List[MessageRecord]:
        ...


class SqlMessageStore:
    """
    Message store backed by the SQLAlchemy session of the current request.

    create() reports failure by returning None rather than raising, so the
    submission pipeline can decide what a failed write means.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, owner_id: str, phone_number: str, content: str) -> Optional[MessageRecord]:
        from smsrelay.models import Message

        message_id = str(uuid.uuid4())
        logger.info(f"Creating message: id={message_id}, owner={owner_id}, to={mask_phone_number(phone_number)}")

        try:
            created_at = datetime.now(timezone.utc)
            message = Message(
                id=message_id,
                owner_id=owner_id,
                phone_number=phone_number,
                content=content,
                created_at=created_at,
            )
            self.db.add(message)
            self.db.commit()
            logger.info(f"Message created successfully: {message_id}")
            return MessageRecord(
                id=message_id,
                owner_id=owner_id,
                phone_number=phone_number,
                content=content,
                created_at=created_at,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create message {message_id}: {e}")
            return None

    def list_by_owner(self, owner_id: str) -> List[MessageRecord]:
        from smsrelay.models import Message

        logger.info(f"Querying messages for owner: {owner_id}")

        # Newest first; seq breaks ties between identical timestamps
        rows = (
            self.db.query(Message)
            .filter(Message.owner_id == owner_id)
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .all()
        )
        logger.debug(f"Retrieved {len(rows)} messages for owner {owner_id}")

        return [
            MessageRecord(
                id=row.id,
                owner_id=row.owner_id,
                phone_number=row.phone_number,
                content=row.content,
                created_at=as_utc(row.created_at),
            )
            for row in rows
        ]
