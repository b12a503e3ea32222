"""Social API: follows, activity feed, notifications."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_user
from src.db.engine import get_session
from src.db.user_tables import UserRow
from src.services.feed import FeedReader
from src.services.ledger import LedgerWriter

router = APIRouter(prefix="/api/v1", tags=["social"])


# ── Follow / Unfollow ────────────────────────────────────────────────────────


@router.post("/users/{user_id}/follow")
async def follow_user(
    user_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Follow another user. Re-following while already following is a no-op."""
    result = await LedgerWriter(session).record_follow(user, user_id)
    return result.envelope()


@router.delete("/users/{user_id}/follow")
async def unfollow_user(
    user_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    result = await LedgerWriter(session).record_unfollow(user, user_id)
    return result.envelope()


@router.get("/users/{user_id}/following")
async def get_following(
    user_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Who `user_id` currently follows."""
    return (await FeedReader(session).get_following(user_id)).envelope()


@router.get("/users/{user_id}/followers")
async def get_followers(
    user_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await FeedReader(session).get_followers(user_id)).envelope()


@router.get("/users/{user_id}/is-following")
async def is_following(
    user_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Whether the current user follows `user_id`."""
    return (await FeedReader(session).is_following(user.id, user_id)).envelope()


# ── Feeds ─────────────────────────────────────────────────────────────────────


@router.get("/me/activity")
async def activity_feed(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Everything the current user has done, newest first, reversals included."""
    result = await FeedReader(session).get_activity_feed(user.id, page=page, page_size=page_size)
    return result.envelope()


@router.get("/me/notifications")
async def notifications(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Follows, likes and comments by others on the current user's things."""
    result = await FeedReader(session).get_notifications(user.id, page=page, page_size=page_size)
    return result.envelope()


@router.get("/me/inbox")
async def inbox(
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Delivered notification references, in arrival order."""
    return (await FeedReader(session).get_inbox(user.id)).envelope()
