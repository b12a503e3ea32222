"""Pydantic models shared by the ledger services and the API."""
from src.models.activity import (  # noqa: F401
    ActivityType,
    ActivityRecord,
    ActionResult,
    REVERSAL_OF,
    POST_SCOPED_TYPES,
    COMMENT_TYPES,
    NOTIFIABLE_TYPES,
    new_activity_ref,
    dump_activity,
)
