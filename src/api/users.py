"""User API routes: sign-up, login, search and the current user's profile."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.auth import (
    create_token, hash_password, verify_password, parse_expires_in, require_user,
)
from src.db.engine import get_session
from src.db.repository import Repository, StoreError
from src.db.user_tables import UserRow
from src.models import ActionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


# ── Schemas ──────────────────────────────────────────────────────────────────

class SignUpRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    username: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6, max_length=200)
    image: str | None = Field(None, max_length=2000)
    expires_in: str | int | None = Field(None, description='Token lifetime, e.g. "1d"')


class LoginRequest(BaseModel):
    username: str
    password: str
    expires_in: str | int | None = None


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, min_length=3, max_length=320)
    image: str | None = Field(None, max_length=2000)
    bio: str | None = Field(None, max_length=2000)


def user_to_dict(user: UserRow) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "bio": user.bio,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ── Routes ───────────────────────────────────────────────────────────────────

@router.post("")
async def sign_up(req: SignUpRequest, session: AsyncSession = Depends(get_session)):
    """Create an account and return a token for it."""
    repo = Repository(session)
    try:
        if await repo.find_one(UserRow, UserRow.username == req.username):
            return ActionResult(message="Username already exists").envelope()
        try:
            ttl = parse_expires_in(req.expires_in)
        except ValueError as exc:
            return ActionResult(message="Invalid expiry", error=str(exc)).envelope()
        user = await repo.create(UserRow, {
            "name": req.name,
            "username": req.username,
            "email": req.email,
            "password_hash": hash_password(req.password),
            "image": req.image,
        })
    except StoreError as exc:
        return ActionResult(message="Sign up failed", error=str(exc)).envelope()

    logger.info("User %s created (%s)", user.username, user.id)
    return ActionResult(
        message="User Created",
        data=user_to_dict(user),
        token=create_token(user.id, user.username, ttl),
    ).envelope()


@router.post("/login")
async def login(req: LoginRequest, session: AsyncSession = Depends(get_session)):
    try:
        user = await Repository(session).find_one(UserRow, UserRow.username == req.username)
    except StoreError as exc:
        return ActionResult(message="Login failed", error=str(exc)).envelope()
    if user is None:
        return ActionResult(message="User Not Found").envelope()
    if not verify_password(req.password, user.password_hash):
        return ActionResult(message="Invalid Credentials").envelope()
    try:
        token = create_token(user.id, user.username, req.expires_in)
    except ValueError as exc:
        return ActionResult(message="Invalid expiry", error=str(exc)).envelope()
    return ActionResult(message="User Logged In", data=user_to_dict(user), token=token).envelope()


@router.get("/me")
async def get_me(user: UserRow = Depends(require_user)):
    return ActionResult(data=user_to_dict(user)).envelope()


@router.put("/me")
async def update_me(
    req: ProfileUpdate,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    values = req.model_dump(exclude_none=True)
    if not values:
        return ActionResult(message="Nothing to update").envelope()
    try:
        updated = await Repository(session).find_one_and_update(
            UserRow, [UserRow.id == user.id], values,
        )
    except StoreError as exc:
        return ActionResult(message="Update failed", error=str(exc)).envelope()
    if updated is None:
        return ActionResult(message="User does not exist").envelope()
    return ActionResult(message="User Credentials updated", data=user_to_dict(updated)).envelope()


@router.get("/search")
async def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Case-insensitive substring match on username or name."""
    search_term = f"%{q.lower()}%"
    size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    try:
        users = await Repository(session).find_many(
            UserRow,
            or_(
                func.lower(UserRow.username).like(search_term),
                func.lower(UserRow.name).like(search_term),
            ),
            order_by=(UserRow.username.asc(),),
            page=page, page_size=size,
        )
    except StoreError as exc:
        return ActionResult(message="Search failed", error=str(exc)).envelope()
    return ActionResult(message="Users fetched", data=[user_to_dict(u) for u in users]).envelope()

