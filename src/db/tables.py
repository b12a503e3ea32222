"""SQLAlchemy ORM base + post table."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Text, DateTime, JSON, Boolean, ForeignKey, Index
)
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class PostRow(Base):
    """A user's post. `like_count` is a cached aggregate of active likes."""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    username = Column(String(100), nullable=False)
    post_ref = Column(String(36), nullable=False, default=lambda: str(uuid.uuid4()))

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    image = Column(JSON, default=list)  # list[str] of image URLs
    tags = Column(JSON, default=list)  # list[str]
    people = Column(JSON, default=list)  # list[user id] tagged in the post
    location = Column(String(200), nullable=False, default="")

    like_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_posts_user_updated", "user_id", "updated_at"),
    )
