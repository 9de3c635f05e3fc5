"""
SQLAlchemy ORM models for users, integrations and notifications.

Column types are the dialect-neutral ones so the same models back
PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(64), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(128))
    password_hash = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    integrations = relationship("Integration", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", cascade="all, delete-orphan")


class Integration(Base):
    """One row per (user, provider); disconnect flips ``is_connected``."""

    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "app_name", name="uq_integrations_user_app"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    app_name = Column(String(64), nullable=False)
    app_type = Column(String(32), nullable=False, default="other")
    is_connected = Column(Boolean, nullable=False, default=False)
    oauth_token = Column(Text)
    refresh_token = Column(Text)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    config = Column(JSON, nullable=False, default=dict)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="integrations")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False, default="")
    type = Column(String(32), nullable=False, default="info")
    channel = Column(String(64))
    metadata_ = Column("metadata", JSON, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
