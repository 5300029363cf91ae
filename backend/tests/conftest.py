"""
Pytest configuration: in-memory SQLite stands in for PostgreSQL, uploads go
to a temporary directory and external services are mocked per test.
"""
import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from churchthreads.database import get_db
from churchthreads.main import app
from churchthreads.models.base import Base
from churchthreads.models.feed import Feed, UserFeed
from churchthreads.models.organization import Organization
from churchthreads.models.user import User
from churchthreads.services.auth import create_access_token

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def tmp_upload_dir(tmp_path, monkeypatch):
    upload_dir = str(tmp_path / "uploads")
    os.makedirs(upload_dir, exist_ok=True)
    monkeypatch.setattr("churchthreads.config.settings.upload_dir", upload_dir)
    return upload_dir


@pytest_asyncio.fixture
async def client(session_maker):
    """AsyncClient for the app with the DB dependency pointed at the test engine."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_org(
    client: AsyncClient,
    name: str = "Grace Church",
    subdomain: str = "grace",
    admin_name: str = "Pastor Admin",
    admin_email: str = "admin@grace.church",
) -> dict:
    """Helper: bootstraps an organization and returns the creation response."""
    resp = await client.post(
        "/api/organizations/",
        json={
            "name": name,
            "subdomain": subdomain,
            "admin_name": admin_name,
            "admin_email": admin_email,
        },
    )
    assert resp.status_code == 201, f"Creating organization failed: {resp.text}"
    return resp.json()


async def add_user(
    session_maker,
    org_id,
    name: str = "Member User",
    email: str | None = None,
    role: str = "user",
    preferences: list[str] | None = None,
) -> dict:
    """Helper: inserts a user directly and returns its id and a bearer token."""
    org_id = uuid.UUID(str(org_id))
    async with session_maker() as session:
        user = User(
            org_id=org_id,
            name=name,
            email=email or f"{uuid.uuid4().hex[:8]}@grace.church",
            role=role,
            notification_preferences=["push", "email"] if preferences is None else preferences,
        )
        session.add(user)
        await session.commit()
        user_id = user.id
    return {"id": str(user_id), "token": create_access_token(user_id, org_id)}


async def add_feed(
    session_maker,
    org_id,
    owner_id,
    name: str = "Youth Group",
    privacy: str = "private",
    member_permissions: list[str] | None = None,
    member_ids: list | None = None,
) -> str:
    """Helper: inserts a feed with an owner and optional plain members."""
    org_id = uuid.UUID(str(org_id))
    async with session_maker() as session:
        feed = Feed(
            org_id=org_id,
            name=name,
            privacy=privacy,
            member_permissions=member_permissions or [],
        )
        session.add(feed)
        await session.flush()
        session.add(
            UserFeed(org_id=org_id, feed_id=feed.id, user_id=uuid.UUID(str(owner_id)), owner=True)
        )
        for member_id in member_ids or []:
            session.add(
                UserFeed(org_id=org_id, feed_id=feed.id, user_id=uuid.UUID(str(member_id)))
            )
        await session.commit()
        return str(feed.id)


async def get_org(session_maker, org_id) -> Organization:
    async with session_maker() as session:
        return await session.get(Organization, uuid.UUID(str(org_id)))


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
