"""Post resource operations. Creating a post also logs CREATE_POST."""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.repository import Repository, StoreError
from src.db.tables import PostRow
from src.db.user_tables import UserRow
from src.models import ActionResult
from src.services.ledger import LedgerWriter

logger = logging.getLogger(__name__)

# Fields an owner may change after creation
EDITABLE_FIELDS = ("image", "title", "description", "tags", "location")


def post_to_dict(post: PostRow) -> dict:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "username": post.username,
        "post_ref": post.post_ref,
        "title": post.title,
        "description": post.description or "",
        "image": post.image or [],
        "tags": post.tags or [],
        "people": post.people or [],
        "location": post.location or "",
        "like_count": post.like_count,
        "active": post.active,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
    }


class PostService:
    def __init__(self, session: AsyncSession):
        self.repo = Repository(session)
        self.ledger = LedgerWriter(session)

    async def create_post(self, actor: UserRow, fields: dict[str, Any]) -> ActionResult:
        values = {
            "user_id": actor.id,
            "username": actor.username,
            "title": fields["title"],
            "description": fields.get("description") or "",
            "image": fields.get("image") or [],
            "tags": fields.get("tags") or [],
            "people": fields.get("people") or [],
            "location": fields.get("location") or "",
            "like_count": 0,
            "active": True,
        }
        try:
            post = await self.repo.create(PostRow, values)
        except StoreError as exc:
            return ActionResult(message="Post creation failed", error=str(exc))

        if await self.ledger.record_post_create(actor, post) is None:
            logger.warning("Post %s created without a CREATE_POST record", post.id)
        return ActionResult(message="Post Created", data=post_to_dict(post))

    async def update_post(
        self, actor: UserRow, post_id: str, update: dict[str, Any],
    ) -> ActionResult:
        values = {k: v for k, v in update.items() if k in EDITABLE_FIELDS and v is not None}
        if not values:
            return ActionResult(message="Nothing to update")
        try:
            post = await self.repo.find_one_and_update(
                PostRow,
                [PostRow.id == post_id, PostRow.user_id == actor.id],
                values,
            )
        except StoreError as exc:
            return ActionResult(message="Post update failed", error=str(exc))
        if post is None:
            return ActionResult(message="Post does not exist")
        return ActionResult(message="Post Updated", data=post_to_dict(post))

    async def get_post(self, post_id: str) -> ActionResult:
        try:
            post = await self.repo.find_one(PostRow, PostRow.id == post_id)
        except StoreError as exc:
            return ActionResult(error=str(exc))
        if post is None:
            return ActionResult(message="Post does not exist")
        return ActionResult(message="Post fetched", data=post_to_dict(post))

    async def list_posts(
        self,
        user_id: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ActionResult:
        """All active posts (or one user's), most recently updated first."""
        criteria = [PostRow.active.is_(True)]
        if user_id is not None:
            criteria.append(PostRow.user_id == user_id)
        size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        try:
            posts = await self.repo.find_many(
                PostRow, *criteria,
                order_by=(PostRow.updated_at.desc(),),
                page=page, page_size=size,
            )
        except StoreError as exc:
            return ActionResult(error=str(exc))
        return ActionResult(message="Posts fetched", data=[post_to_dict(p) for p in posts])
