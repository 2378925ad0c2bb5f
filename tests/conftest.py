"""
Shared test fixtures for the Threadline test suite.

Every test runs against its own in-memory aiosqlite database.
"""

import os
from typing import AsyncGenerator

import pytest

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FIRST_ADMIN_PASSWORD"] = "test-admin-password"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from threadline.api.v1.deps import get_db
from threadline.core.security import get_password_hash
from threadline.db.base import Base
from threadline.main import app
from threadline.models.user import Role, User
from threadline.services.sessions import issue_session

PASSWORD = "secret123"


@pytest.fixture
async def engine():
    """Fresh database per test; tables created up front."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the per-test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Users & tokens ──────────────────────────────────────────────────
class Account:
    """A seeded user plus one live session token."""

    def __init__(self, user: User, token: str, session_id: int) -> None:
        self.user = user
        self.id = user.id
        self.username = user.username
        self.token = token
        self.session_id = session_id

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def make_account(session_factory):
    """Factory: insert a user directly and open a session for it."""

    async def _make(username: str, role: Role = Role.USER, name: str | None = None) -> Account:
        async with session_factory() as db:
            user = User(
                username=username,
                name=name or username.title(),
                hashed_password=get_password_hash(PASSWORD),
                role=role,
            )
            db.add(user)
            await db.commit()
            session = await issue_session(db, user)
            return Account(user, session.token, session.id)

    return _make


@pytest.fixture
async def alice(make_account) -> Account:
    return await make_account("alice")


@pytest.fixture
async def bob(make_account) -> Account:
    return await make_account("bob")


@pytest.fixture
async def admin(make_account) -> Account:
    return await make_account("root", role=Role.ADMIN, name="Site Admin")


@pytest.fixture
def create_post(async_client):
    """Factory: create a post through the API and return its JSON."""

    async def _create(account: Account, body: str = "hello world") -> dict:
        resp = await async_client.post("/api/v1/posts", json={"body": body}, headers=account.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
