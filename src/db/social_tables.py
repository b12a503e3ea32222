"""Social tables: the activity ledger.

The ledger is the system of record for follows, likes and comments. Rows are
never deleted; reversing an action flips `active` and appends a paired
reversal row.
"""
from __future__ import annotations

import uuid

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, Boolean, Enum as SAEnum,
    ForeignKey, Index,
)

from src.db.tables import Base, utcnow
from src.models import ActivityType


class ActivityRow(Base):
    """One logged action. Display fields are denormalized at write time."""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    activity_ref = Column(String(36), nullable=False, index=True)  # correlation, not unique
    type = Column(SAEnum(ActivityType), nullable=False)

    actor_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    target_owner_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    username = Column(String(100), nullable=False)  # actor's name at write time

    post_id = Column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=True,
    )
    post_ref = Column(String(36), nullable=True)
    message = Column(Text, nullable=True)
    reverses_id = Column(String(36), ForeignKey("activities.id"), nullable=True)

    active = Column(Boolean, nullable=False, default=True)

    likes_count = Column(Integer, nullable=True, default=0)
    creator_image = Column(String(2000), nullable=True)
    user_image = Column(String(2000), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_activity_actor_time", "actor_id", "created_at"),
        Index("ix_activity_target_time", "target_owner_id", "created_at"),
        Index("ix_activity_pair_state", "actor_id", "target_owner_id", "type", "active"),
        Index("ix_activity_post_state", "post_id", "type", "active"),
    )
