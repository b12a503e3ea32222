"""Like counter maintenance for posts.

`PostRow.like_count` is a cache of the number of active LIKE_POST records.
It is moved by single-statement increments, never recomputed on the write
path; `drift` exposes the gap between the cache and the ledger.
"""
from __future__ import annotations

import logging
from typing import Optional

from src.db.repository import Repository, StoreError
from src.db.social_tables import ActivityRow
from src.db.tables import PostRow
from src.models import ActivityType

logger = logging.getLogger(__name__)


class LikeCounter:
    def __init__(self, repo: Repository):
        self.repo = repo

    async def increment(self, post_id: str) -> Optional[PostRow]:
        """+1 on the post's like_count. None if the post does not exist.

        Raises StoreError on persistence failure.
        """
        return await self.repo.increment(PostRow, post_id, "like_count", 1)

    async def decrement(self, post_id: str) -> Optional[PostRow]:
        return await self.repo.increment(PostRow, post_id, "like_count", -1)

    async def compensate(self, post_id: str, amount: int) -> None:
        """Undo an earlier counter move after the paired ledger step failed."""
        try:
            await self.repo.increment(PostRow, post_id, "like_count", amount)
        except StoreError:
            # Counter and ledger now disagree; nothing further reconciles them.
            logger.exception("Like counter for post %s drifted by %+d", post_id, -amount)
            return
        logger.warning("Compensated like counter on post %s by %+d", post_id, amount)

    async def count_active_likes(self, post_id: str) -> int:
        return await self.repo.count(
            ActivityRow,
            ActivityRow.post_id == post_id,
            ActivityRow.type == ActivityType.LIKE_POST,
            ActivityRow.active.is_(True),
        )

    async def drift(self, post_id: str) -> Optional[int]:
        """Cached like_count minus the ledger's active like count."""
        post = await self.repo.find_one(PostRow, PostRow.id == post_id)
        if post is None:
            return None
        return post.like_count - await self.count_active_likes(post_id)
