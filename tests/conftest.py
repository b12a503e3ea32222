"""Shared test fixtures: single test DB for all test modules."""
from __future__ import annotations

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from src.db.tables import Base
from src.db.engine import get_session

# Use a shared in-memory DB with check_same_thread=False and StaticPool
# This ensures all connections see the same in-memory database.
from sqlalchemy.pool import StaticPool

TEST_DB_URL = "sqlite+aiosqlite:///file:test?mode=memory&cache=shared&uri=true"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)


async def override_get_session():
    async with TestSession() as session:
        yield session


# Import app and override BEFORE any test module imports app
from src.api.main import app  # noqa: E402

app.dependency_overrides[get_session] = override_get_session

import src.db.engine as _engine_mod  # noqa: E402
_engine_mod.async_session = TestSession
_engine_mod.engine = test_engine


from contextlib import asynccontextmanager  # noqa: E402

@asynccontextmanager
async def get_test_session():
    """Context manager for seeding data in tests."""
    async with TestSession() as session:
        yield session


async def seed_user(username="alice", image=None):
    """Insert a user directly (no password round trip)."""
    from src.db.repository import Repository
    from src.db.user_tables import UserRow

    async with TestSession() as session:
        return await Repository(session).create(UserRow, {
            "username": username,
            "name": username.title(),
            "email": f"{username}@test.com",
            "password_hash": "x$y",
            "image": image,
        })


async def seed_post(owner, title="Sunset", image=None):
    """Insert a post owned by `owner`, bypassing the CREATE_POST log."""
    from src.db.repository import Repository
    from src.db.tables import PostRow

    async with TestSession() as session:
        return await Repository(session).create(PostRow, {
            "user_id": owner.id,
            "username": owner.username,
            "title": title,
            "image": image if image is not None else ["https://img.test/p.jpg"],
        })


async def signup(client, username="alice", password="Pass123!"):
    """Sign up through the API; returns (user_id, auth headers)."""
    resp = await client.post("/api/v1/users", json={
        "name": username.title(),
        "username": username,
        "email": f"{username}@test.com",
        "password": password,
    })
    assert resp.status_code == 200, f"Signup failed: {resp.text}"
    data = resp.json()
    return data["data"]["id"], {"Authorization": f"Bearer {data['token']}"}


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create tables before each test, drop after."""
    import src.db.user_tables  # noqa: F401
    import src.db.social_tables  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
