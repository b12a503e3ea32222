"""Posts API: post CRUD plus likes and comments, both backed by the ledger."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_user
from src.db.engine import get_session
from src.db.user_tables import UserRow
from src.services.feed import FeedReader
from src.services.ledger import LedgerWriter
from src.services.posts import PostService

router = APIRouter(prefix="/api/v1", tags=["posts"])


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=5000)
    image: list[str] = Field(default_factory=list, max_length=20)
    tags: list[str] = Field(default_factory=list, max_length=50)
    people: list[str] = Field(default_factory=list, max_length=50)
    location: str | None = Field(None, max_length=200)


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=5000)
    image: list[str] | None = Field(None, max_length=20)
    tags: list[str] | None = Field(None, max_length=50)
    location: str | None = Field(None, max_length=200)


class CommentCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


# ── Posts ─────────────────────────────────────────────────────────────────────


@router.post("/posts")
async def create_post(
    req: PostCreate,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await PostService(session).create_post(user, req.model_dump())).envelope()


@router.get("/posts")
async def list_posts(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await PostService(session).list_posts(page=page, page_size=page_size)).envelope()


@router.get("/users/{user_id}/posts")
async def list_user_posts(
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    result = await PostService(session).list_posts(user_id=user_id, page=page, page_size=page_size)
    return result.envelope()


@router.get("/posts/{post_id}")
async def get_post(
    post_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await PostService(session).get_post(post_id)).envelope()


@router.put("/posts/{post_id}")
async def update_post(
    post_id: str,
    req: PostUpdate,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Owner-only edit of a post's content fields."""
    result = await PostService(session).update_post(user, post_id, req.model_dump(exclude_none=True))
    return result.envelope()


# ── Likes ─────────────────────────────────────────────────────────────────────


@router.post("/posts/{post_id}/likes")
async def like_post(
    post_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await LedgerWriter(session).record_like(user, post_id)).envelope()


@router.get("/posts/{post_id}/likes")
async def get_likes(
    post_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Who currently likes the post, newest first."""
    return (await FeedReader(session).get_likers(post_id)).envelope()


@router.get("/posts/{post_id}/liked")
async def check_liked(
    post_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await FeedReader(session).is_liked(user.id, post_id)).envelope()


@router.delete("/likes/{activity_id}")
async def unlike(
    activity_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return (await LedgerWriter(session).record_unlike(activity_id, user)).envelope()


# ── Comments ──────────────────────────────────────────────────────────────────


@router.post("/posts/{post_id}/comments")
async def post_comment(
    post_id: str,
    req: CommentCreate,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    result = await LedgerWriter(session).record_comment(user, post_id, req.message)
    return result.envelope()


@router.get("/posts/{post_id}/comments")
async def get_comments(
    post_id: str,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    limit: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    result = await FeedReader(session).get_comments(
        post_id, page=page, page_size=page_size, limit=limit,
    )
    return result.envelope()


@router.put("/comments/{activity_id}")
async def edit_comment(
    activity_id: str,
    req: CommentCreate,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    result = await LedgerWriter(session).record_comment_edit(activity_id, user, req.message)
    return result.envelope()


@router.delete("/comments/{activity_id}")
async def delete_comment(
    activity_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Remove a comment (its author or the post's owner)."""
    return (await LedgerWriter(session).record_uncomment(activity_id, user)).envelope()
