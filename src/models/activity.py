"""Activity ledger models: record schema, type enum and the result envelope."""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ActivityType(str, Enum):
    CREATE_POST = "CREATE_POST"
    FOLLOW_USER = "FOLLOW_USER"
    UNFOLLOW_USER = "UNFOLLOW_USER"
    LIKE_POST = "LIKE_POST"
    REMOVE_LIKE_POST = "REMOVE_LIKE_POST"
    COMMENT_POST = "COMMENT_POST"
    REMOVE_COMMENT_POST = "REMOVE_COMMENT_POST"


# reversal type -> the type it deactivates
REVERSAL_OF: dict[ActivityType, ActivityType] = {
    ActivityType.UNFOLLOW_USER: ActivityType.FOLLOW_USER,
    ActivityType.REMOVE_LIKE_POST: ActivityType.LIKE_POST,
    ActivityType.REMOVE_COMMENT_POST: ActivityType.COMMENT_POST,
}

POST_SCOPED_TYPES = frozenset({
    ActivityType.CREATE_POST,
    ActivityType.LIKE_POST,
    ActivityType.REMOVE_LIKE_POST,
    ActivityType.COMMENT_POST,
    ActivityType.REMOVE_COMMENT_POST,
})

COMMENT_TYPES = frozenset({ActivityType.COMMENT_POST, ActivityType.REMOVE_COMMENT_POST})

# Only these ever show up in someone's notification view
NOTIFIABLE_TYPES = frozenset({
    ActivityType.FOLLOW_USER,
    ActivityType.LIKE_POST,
    ActivityType.COMMENT_POST,
})


def new_activity_ref() -> str:
    """Mint a fresh correlation token."""
    return str(uuid.uuid4())


class ActivityRecord(BaseModel):
    """A ledger entry.

    Built before persistence (``id`` unset) and re-validated from rows on the
    read path, so the shape rules below hold for everything the ledger
    returns.
    """
    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    id: Optional[str] = None
    activity_ref: str = Field(default_factory=new_activity_ref)
    type: ActivityType
    actor_id: str
    target_owner_id: str
    username: str = Field(..., min_length=1)

    post_id: Optional[str] = None
    post_ref: Optional[str] = None
    message: Optional[str] = None
    reverses_id: Optional[str] = None

    active: bool = True

    likes_count: Optional[int] = 0
    creator_image: Optional[str] = None
    user_image: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("activity_ref")
    @classmethod
    def _ref_is_uuid(cls, v: str) -> str:
        try:
            uuid.UUID(v)
        except ValueError:
            raise ValueError("activity_ref must be a UUID string")
        return v

    @model_validator(mode="after")
    def _check_shape(self) -> "ActivityRecord":
        if self.type in POST_SCOPED_TYPES:
            if not self.post_id or not self.post_ref:
                raise ValueError(f"{self.type.value} requires post_id and post_ref")
        elif self.post_id or self.post_ref:
            raise ValueError(f"{self.type.value} is not post-scoped")

        if self.type in COMMENT_TYPES:
            if self.type == ActivityType.COMMENT_POST and not (self.message or "").strip():
                raise ValueError("COMMENT_POST requires a message")
        elif self.message is not None:
            raise ValueError(f"{self.type.value} cannot carry a message")

        if self.type in REVERSAL_OF and not self.reverses_id:
            raise ValueError(f"{self.type.value} must reference the record it reverses")
        return self

    def to_row_values(self) -> dict[str, Any]:
        """Column values for an insert (store assigns id and timestamps)."""
        return self.model_dump(exclude={"id", "created_at", "updated_at"})


class ActionResult(BaseModel):
    """Envelope every ledger/resource operation returns.

    Exactly one of ``data`` or ``error`` is normally set; a bare ``message``
    means the request was a no-op or referenced something missing.
    """
    message: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
    token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

    def envelope(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def dump_activity(row: Any) -> dict:
    """Ledger row (or record) -> JSON-ready dict."""
    return ActivityRecord.model_validate(row).model_dump(mode="json")
