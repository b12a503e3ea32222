"""User-related database tables: profiles and the notification inbox."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index

from src.db.tables import Base, utcnow


class UserRow(Base):
    """User profile. Credentials live here but are handled by src.auth."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)
    password_hash = Column(String(256), nullable=False)  # PBKDF2-SHA256
    image = Column(String(2000), nullable=True)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class NotificationRow(Base):
    """One entry in a user's notification inbox.

    Append-only: rows are inserted by the notifier and never updated, so
    concurrent writers never conflict. The autoincrement id is the arrival
    order; the same activity may appear more than once.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    activity_id = Column(
        String(36), ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_notifications_user_order", "user_id", "id"),
    )
