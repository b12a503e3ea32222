"""Activity notifier: writes a ledger record and fans it out to an inbox.

Delivery is at-most-once: the record write is what callers see; a failed
inbox append is logged and dropped, never retried or rolled back.
"""
from __future__ import annotations

import logging
from typing import Optional

from src.db.repository import Repository, StoreError
from src.db.social_tables import ActivityRow
from src.db.user_tables import NotificationRow
from src.models import ActivityRecord

logger = logging.getLogger(__name__)


class ActivityNotifier:
    def __init__(self, repo: Repository):
        self.repo = repo

    async def create_activity(self, record: ActivityRecord) -> Optional[ActivityRow]:
        try:
            return await self.repo.create(ActivityRow, record.to_row_values())
        except StoreError as exc:
            logger.warning(
                "Could not record %s by %s: %s", record.type.value, record.actor_id, exc,
            )
            return None

    async def create_notification(self, user_id: str, activity_id: str) -> bool:
        """Append one reference to `user_id`'s inbox. Pure insert, no read."""
        try:
            await self.repo.create(NotificationRow, {
                "user_id": user_id,
                "activity_id": activity_id,
            })
        except StoreError as exc:
            logger.warning("Dropped notification %s -> %s: %s", activity_id, user_id, exc)
            return False
        return True

    async def trigger(
        self,
        record: ActivityRecord,
        target_owner_id: str,
        notify: bool = True,
    ) -> Optional[ActivityRow]:
        """Persist `record`; notify `target_owner_id` unless they are the actor.

        Returns the stored row, or None if the ledger write failed (in which
        case nobody is notified).
        """
        row = await self.create_activity(record)
        if row is None:
            return None
        if notify and target_owner_id != record.actor_id:
            delivered = await self.create_notification(target_owner_id, row.id)
            if delivered:
                logger.info("Notified %s of %s %s", target_owner_id, row.type.value, row.id)
        return row
