"""
SQLAlchemy ORM models for users, linked Drive accounts and synced files.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(128))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    accounts = relationship("LinkedAccount", back_populates="user", cascade="all, delete-orphan")


class LinkedAccount(Base):
    __tablename__ = "linked_accounts"
    __table_args__ = (
        UniqueConstraint("provider_account_id", "user_id", name="uq_linked_accounts_identity"),
        Index("ix_linked_accounts_user_id", "user_id"),
    )

    account_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(32), nullable=False, default="google_drive")
    provider_account_id = Column(String(256), nullable=False)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="active")
    scopes = Column(JSON, default=list)
    profile_image = Column(Text)
    last_sync_at = Column(DateTime(timezone=True))
    last_refreshed_at = Column(DateTime(timezone=True))
    quota_used = Column(BigInteger, default=0)
    quota_total = Column(BigInteger, default=0)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="accounts")
    files = relationship("SyncedFile", back_populates="account", cascade="all, delete-orphan")


class SyncedFile(Base):
    __tablename__ = "synced_files"
    __table_args__ = (
        UniqueConstraint("provider_file_id", "account_id", name="uq_synced_files_identity"),
        Index("ix_synced_files_user_account", "user_id", "account_id"),
    )

    file_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("linked_accounts.account_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    provider_file_id = Column(String(256), nullable=False)
    name = Column(Text, nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(BigInteger, default=0)
    is_duplicate = Column(Boolean, default=False)
    trashed = Column(Boolean, default=False)
    modified_time = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    account = relationship("LinkedAccount", back_populates="files")
