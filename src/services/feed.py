"""Read models derived from the activity ledger.

Nothing here writes. Feeds are newest first; the follow lists are in the
order the follows happened.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.repository import Repository, StoreError
from src.db.social_tables import ActivityRow
from src.db.tables import PostRow
from src.db.user_tables import UserRow, NotificationRow
from src.models import ActivityType, ActionResult, NOTIFIABLE_TYPES, dump_activity

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (ActivityRow.created_at.desc(),)
_OLDEST_FIRST = (ActivityRow.created_at.asc(),)


def _page_size(page_size: Optional[int]) -> int:
    size = page_size or settings.DEFAULT_PAGE_SIZE
    return max(1, min(size, settings.MAX_PAGE_SIZE))


def _user_card(user: Optional[UserRow]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "name": user.name, "image": user.image}


def _post_card(post: Optional[PostRow]) -> Optional[dict]:
    if post is None:
        return None
    return {
        "id": post.id,
        "title": post.title,
        "image": post.image or [],
        "like_count": post.like_count,
    }


class FeedReader:
    def __init__(self, session: AsyncSession):
        self.repo = Repository(session)

    async def _resolve(self, rows: Sequence[ActivityRow]) -> list[dict]:
        """Attach actor/target/post display data, two queries per kind at most."""
        user_ids = {r.actor_id for r in rows} | {r.target_owner_id for r in rows}
        post_ids = {r.post_id for r in rows if r.post_id}

        users: dict[str, UserRow] = {}
        if user_ids:
            for u in await self.repo.find_many(UserRow, UserRow.id.in_(list(user_ids))):
                users[u.id] = u
        posts: dict[str, PostRow] = {}
        if post_ids:
            for p in await self.repo.find_many(PostRow, PostRow.id.in_(list(post_ids))):
                posts[p.id] = p

        items = []
        for row in rows:
            item = dump_activity(row)
            item["actor"] = _user_card(users.get(row.actor_id))
            item["target_owner"] = _user_card(users.get(row.target_owner_id))
            item["post"] = _post_card(posts.get(row.post_id)) if row.post_id else None
            items.append(item)
        return items

    async def _listing(
        self,
        message: str,
        criteria: Iterable,
        order_by: Iterable = _NEWEST_FIRST,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ActionResult:
        try:
            rows = await self.repo.find_many(
                ActivityRow, *criteria, order_by=order_by,
                page=page, page_size=page_size, limit=limit,
            )
            data = await self._resolve(rows)
        except StoreError as exc:
            return ActionResult(error=str(exc))
        return ActionResult(message=message, data=data)

    # ── Per-user views ────────────────────────────────────────────────────

    async def get_activity_feed(
        self, user_id: str, page: int = 1, page_size: Optional[int] = None,
    ) -> ActionResult:
        """Everything the user did, reversed actions included."""
        return await self._listing(
            "Activity fetched",
            [ActivityRow.actor_id == user_id],
            page=page, page_size=_page_size(page_size),
        )

    async def get_notifications(
        self, user_id: str, page: int = 1, page_size: Optional[int] = None,
    ) -> ActionResult:
        """Follows, likes and comments by others on the user's things.

        Reversal records never appear here; they are audit entries only.
        """
        return await self._listing(
            "Notifications fetched",
            [
                ActivityRow.target_owner_id == user_id,
                ActivityRow.actor_id != user_id,
                ActivityRow.type.in_(sorted(NOTIFIABLE_TYPES)),
            ],
            page=page, page_size=_page_size(page_size),
        )

    async def get_inbox(self, user_id: str) -> ActionResult:
        """The user's delivered notifications in arrival order, duplicates kept."""
        try:
            refs = await self.repo.find_many(
                NotificationRow,
                NotificationRow.user_id == user_id,
                order_by=(NotificationRow.id.asc(),),
            )
            activity_ids = {n.activity_id for n in refs}
            rows = []
            if activity_ids:
                rows = await self.repo.find_many(ActivityRow, ActivityRow.id.in_(list(activity_ids)))
            by_id = {item["id"]: item for item in await self._resolve(rows)}
        except StoreError as exc:
            return ActionResult(error=str(exc))
        data = [by_id[n.activity_id] for n in refs if n.activity_id in by_id]
        return ActionResult(message="Inbox fetched", data=data)

    async def get_following(self, user_id: str) -> ActionResult:
        return await self._listing(
            "Following fetched",
            [
                ActivityRow.actor_id == user_id,
                ActivityRow.type == ActivityType.FOLLOW_USER,
                ActivityRow.active.is_(True),
            ],
            order_by=_OLDEST_FIRST,
        )

    async def get_followers(self, user_id: str) -> ActionResult:
        return await self._listing(
            "Followers fetched",
            [
                ActivityRow.target_owner_id == user_id,
                ActivityRow.type == ActivityType.FOLLOW_USER,
                ActivityRow.active.is_(True),
            ],
            order_by=_OLDEST_FIRST,
        )

    # ── Existence checks ──────────────────────────────────────────────────

    async def _exists(self, *criteria) -> ActionResult:
        try:
            n = await self.repo.count(ActivityRow, *criteria, ActivityRow.active.is_(True))
        except StoreError as exc:
            return ActionResult(error=str(exc))
        return ActionResult(message="Checked", data=n > 0)

    async def is_following(self, actor_id: str, target_owner_id: str) -> ActionResult:
        return await self._exists(
            ActivityRow.actor_id == actor_id,
            ActivityRow.target_owner_id == target_owner_id,
            ActivityRow.type == ActivityType.FOLLOW_USER,
        )

    async def is_liked(self, actor_id: str, post_id: str) -> ActionResult:
        return await self._exists(
            ActivityRow.actor_id == actor_id,
            ActivityRow.post_id == post_id,
            ActivityRow.type == ActivityType.LIKE_POST,
        )

    # ── Per-post views ────────────────────────────────────────────────────

    async def get_likers(self, post_id: str) -> ActionResult:
        return await self._listing(
            "Likes fetched",
            [
                ActivityRow.post_id == post_id,
                ActivityRow.type == ActivityType.LIKE_POST,
                ActivityRow.active.is_(True),
            ],
        )

    async def get_comments(
        self,
        post_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ActionResult:
        return await self._listing(
            "Comments Fetched",
            [
                ActivityRow.post_id == post_id,
                ActivityRow.type == ActivityType.COMMENT_POST,
                ActivityRow.active.is_(True),
            ],
            page=page, page_size=_page_size(page_size), limit=limit,
        )
