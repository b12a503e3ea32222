"""Ledger writer: the state-changing half of every social action.

Each operation is a short, sequential chain of single-row store calls:
locate, flip `active`, append the paired record, move the like counter.
Nothing spans a transaction, so two requests can interleave between steps.
Known windows:

- follow: two concurrent follows can both pass the "already following"
  check and leave two active FOLLOW_USER rows; a later unfollow deactivates
  only one of them.
- like: the counter move and the ledger write are separate. A failed ledger
  write is compensated on the counter, but a crash between the two steps
  still leaves them disagreeing (see LikeCounter.drift).

Every public method returns an ActionResult and never raises for store
failures or missing rows.

Correlation: COMMENT/LIKE reversals reuse the origin's activity_ref; an
UNFOLLOW gets a fresh one. Every reversal carries `reverses_id` pointing at
the row it deactivated.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import Repository, StoreError
from src.db.social_tables import ActivityRow
from src.db.tables import PostRow
from src.db.user_tables import UserRow
from src.models import ActivityRecord, ActivityType, ActionResult, dump_activity
from src.services.counters import LikeCounter
from src.services.notifier import ActivityNotifier

logger = logging.getLogger(__name__)


def _first_image(post: PostRow) -> str:
    return post.image[0] if post.image else ""


class LedgerWriter:
    def __init__(self, session: AsyncSession):
        self.repo = Repository(session)
        self.notifier = ActivityNotifier(self.repo)
        self.counter = LikeCounter(self.repo)

    async def _active_follow_count(self, actor_id: str, target_owner_id: str) -> int:
        return await self.repo.count(
            ActivityRow,
            ActivityRow.actor_id == actor_id,
            ActivityRow.target_owner_id == target_owner_id,
            ActivityRow.type == ActivityType.FOLLOW_USER,
            ActivityRow.active.is_(True),
        )

    async def _deactivate(self, *criteria) -> Optional[ActivityRow]:
        """Flip one matching active row to inactive; None if none matched."""
        return await self.repo.find_one_and_update(
            ActivityRow,
            [*criteria, ActivityRow.active.is_(True)],
            {"active": False},
        )

    # ── Follow / Unfollow ─────────────────────────────────────────────────

    async def record_follow(self, actor: UserRow, target_owner_id: str) -> ActionResult:
        if target_owner_id == actor.id:
            return ActionResult(message="Cannot follow yourself")
        try:
            target = await self.repo.find_one(UserRow, UserRow.id == target_owner_id)
            if target is None:
                return ActionResult(message="User does not exist")
            # Not atomic with the insert below; see module docstring.
            if await self._active_follow_count(actor.id, target_owner_id):
                return ActionResult(message="Already following")

            record = ActivityRecord(
                type=ActivityType.FOLLOW_USER,
                actor_id=actor.id,
                target_owner_id=target_owner_id,
                username=actor.username,
                user_image=actor.image,
                creator_image=target.image,
            )
            row = await self.repo.create(ActivityRow, record.to_row_values())
        except StoreError as exc:
            return ActionResult(message="Follow failed", error=str(exc))

        logger.info("%s followed %s (%s)", actor.id, target_owner_id, row.id)
        return ActionResult(message="Followed Successfully", data=dump_activity(row))

    async def record_unfollow(self, actor: UserRow, target_owner_id: str) -> ActionResult:
        try:
            origin = await self._deactivate(
                ActivityRow.actor_id == actor.id,
                ActivityRow.target_owner_id == target_owner_id,
                ActivityRow.type == ActivityType.FOLLOW_USER,
            )
            if origin is None:
                return ActionResult(message="Nothing to unfollow")

            record = ActivityRecord(
                type=ActivityType.UNFOLLOW_USER,
                actor_id=actor.id,
                target_owner_id=target_owner_id,
                username=actor.username,
                reverses_id=origin.id,
                user_image=actor.image,
                creator_image=origin.creator_image,
            )
            row = await self.repo.create(ActivityRow, record.to_row_values())
        except StoreError as exc:
            return ActionResult(message="Unfollow failed", error=str(exc))

        logger.info("%s unfollowed %s (%s)", actor.id, target_owner_id, row.id)
        return ActionResult(message="Unfollowed Successfully", data=dump_activity(row))

    # ── Comments ──────────────────────────────────────────────────────────

    async def record_comment(self, actor: UserRow, post_id: str, message: str) -> ActionResult:
        try:
            post = await self.repo.find_one(PostRow, PostRow.id == post_id)
            if post is None:
                return ActionResult(message="Post does not exist")
            record = ActivityRecord(
                type=ActivityType.COMMENT_POST,
                actor_id=actor.id,
                target_owner_id=post.user_id,
                username=actor.username,
                post_id=post.id,
                post_ref=post.post_ref,
                message=message,
                user_image=actor.image,
                creator_image=_first_image(post),
            )
        except (StoreError, ValidationError) as exc:
            return ActionResult(message="Comment failed", error=str(exc))

        row = await self.notifier.trigger(record, post.user_id)
        if row is None:
            return ActionResult(message="Comment failed", error="activity could not be recorded")
        return ActionResult(message="Commented Successfully", data=dump_activity(row))

    async def record_comment_edit(
        self, activity_id: str, actor: UserRow, message: str,
    ) -> ActionResult:
        """Change the text of one of the actor's own live comments."""
        if not message or not message.strip():
            return ActionResult(message="Comment update failed", error="message is empty")
        try:
            row = await self.repo.find_one_and_update(
                ActivityRow,
                [
                    ActivityRow.id == activity_id,
                    ActivityRow.type == ActivityType.COMMENT_POST,
                    ActivityRow.actor_id == actor.id,
                    ActivityRow.active.is_(True),
                ],
                {"message": message},
            )
        except StoreError as exc:
            return ActionResult(message="Comment update failed", error=str(exc))
        if row is None:
            return ActionResult(message="Comment does not exist")
        return ActionResult(message="Comment updated successfully", data=dump_activity(row))

    async def record_uncomment(self, activity_id: str, actor: UserRow) -> ActionResult:
        """Remove a comment. Allowed for its author and the post's owner."""
        try:
            origin = await self.repo.find_one(ActivityRow, ActivityRow.id == activity_id)
            if origin is None or origin.type != ActivityType.COMMENT_POST:
                return ActionResult(message="Comment does not exist")
            if actor.id not in (origin.actor_id, origin.target_owner_id):
                return ActionResult(message="Not permitted to remove this comment")

            origin = await self._deactivate(
                ActivityRow.id == activity_id,
                ActivityRow.type == ActivityType.COMMENT_POST,
            )
            if origin is None:
                return ActionResult(message="Comment already removed")
        except StoreError as exc:
            return ActionResult(message="Comment deletion failed", error=str(exc))

        record = ActivityRecord(
            type=ActivityType.REMOVE_COMMENT_POST,
            activity_ref=origin.activity_ref,
            actor_id=actor.id,
            target_owner_id=origin.target_owner_id,
            username=actor.username,
            post_id=origin.post_id,
            post_ref=origin.post_ref,
            reverses_id=origin.id,
            user_image=actor.image,
            creator_image=origin.creator_image,
        )
        row = await self.notifier.trigger(record, origin.target_owner_id, notify=False)
        if row is None:
            return ActionResult(
                message="Comment deletion failed", error="activity could not be recorded",
            )
        return ActionResult(message="Comment Deleted Successfully", data=dump_activity(row))

    # ── Likes ─────────────────────────────────────────────────────────────

    async def record_like(self, actor: UserRow, post_id: str) -> ActionResult:
        """Count the like, then log it. Repeat calls are not deduplicated."""
        try:
            post = await self.counter.increment(post_id)
        except StoreError as exc:
            return ActionResult(message="Like failed", error=str(exc))
        if post is None:
            return ActionResult(message="Post does not exist")

        row = None
        try:
            record = ActivityRecord(
                type=ActivityType.LIKE_POST,
                actor_id=actor.id,
                target_owner_id=post.user_id,
                username=actor.username,
                post_id=post.id,
                post_ref=post.post_ref,
                likes_count=post.like_count,
                user_image=actor.image,
                creator_image=_first_image(post),
            )
            row = await self.notifier.trigger(record, post.user_id)
        except ValidationError as exc:
            logger.warning("Rejected like record for post %s: %s", post_id, exc)
        if row is None:
            await self.counter.compensate(post.id, -1)
            return ActionResult(message="Like failed", error="activity could not be recorded")
        return ActionResult(message="Liked Successfully", data=dump_activity(row))

    async def record_unlike(self, activity_id: str, actor: UserRow) -> ActionResult:
        """Withdraw one of the actor's likes, identified by its ledger id."""
        try:
            origin = await self.repo.find_one(ActivityRow, ActivityRow.id == activity_id)
            if origin is None or origin.type != ActivityType.LIKE_POST:
                return ActionResult(message="Like does not exist")
            if origin.actor_id != actor.id:
                return ActionResult(message="Not permitted to remove this like")

            origin = await self._deactivate(
                ActivityRow.id == activity_id,
                ActivityRow.type == ActivityType.LIKE_POST,
            )
            if origin is None:
                return ActionResult(message="Like already removed")
        except StoreError as exc:
            return ActionResult(message="Like remove failed", error=str(exc))

        try:
            post = await self.counter.decrement(origin.post_id)
        except StoreError as exc:
            # Put the like back so the counter and the ledger still agree.
            try:
                await self.repo.find_one_and_update(
                    ActivityRow,
                    [ActivityRow.id == origin.id, ActivityRow.active.is_(False)],
                    {"active": True},
                )
            except StoreError:
                logger.exception("Like %s left inactive with an undecremented counter", origin.id)
            return ActionResult(message="Like remove failed", error=str(exc))
        if post is None:
            return ActionResult(message="Post does not exist")

        record = ActivityRecord(
            type=ActivityType.REMOVE_LIKE_POST,
            activity_ref=origin.activity_ref,
            actor_id=actor.id,
            target_owner_id=post.user_id,
            username=actor.username,
            post_id=post.id,
            post_ref=post.post_ref,
            reverses_id=origin.id,
            likes_count=post.like_count,
            user_image=actor.image,
            creator_image=_first_image(post),
        )
        row = await self.notifier.trigger(record, post.user_id, notify=False)
        if row is None:
            return ActionResult(message="Like remove failed", error="activity could not be recorded")
        return ActionResult(message="Like removed Successfully", data=dump_activity(row))

    # ── Posts ─────────────────────────────────────────────────────────────

    async def record_post_create(self, actor: UserRow, post: PostRow) -> Optional[ActivityRow]:
        """Log a new post. Owner and actor coincide, so nobody is notified."""
        record = ActivityRecord(
            type=ActivityType.CREATE_POST,
            actor_id=actor.id,
            target_owner_id=post.user_id,
            username=actor.username,
            post_id=post.id,
            post_ref=post.post_ref,
            user_image=actor.image,
            creator_image=_first_image(post),
        )
        return await self.notifier.trigger(record, post.user_id)
