"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Column, DateTime, Integer, String, Text

from smsrelay.storage import Base


class Message(Base):
    """
    SQLAlchemy model for submitted SMS messages.

    Table: messages
    seq records insertion order and breaks created_at ties; id is the
    public identifier.
    """
    __tablename__ = "messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)
    phone_number = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class Account(Base):
    """
    SQLAlchemy model for registered accounts.

    Table: accounts
    username_key is the lower-cased username and carries the unique
    constraint, so usernames are unique regardless of case.
    """
    __tablename__ = "accounts"

    id = Column(String, primary_key=True, index=True)
    username = Column(String, nullable=False)
    username_key = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
