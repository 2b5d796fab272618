"""Shared test fixtures for async database, settings, users, and a fixed clock."""

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from agua_api.core.config import Settings
from agua_api.core.security import hash_password
from agua_api.models.base import Base
from agua_api.models.user import User

TEST_PASSWORD = "correct-horse-battery"
TEST_SECRET = "test-secret-key-not-for-production-use"


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=TEST_SECRET,
        jwt_algorithm="HS256",
    )


@pytest.fixture
def now() -> datetime:
    """A fixed decision time used in place of the wall clock."""
    return datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


async def make_user(
    session: AsyncSession,
    *,
    email: str = "operator@example.com",
    role: str = "operator",
    password: str = TEST_PASSWORD,
    is_active: bool = True,
    name: str = "Test User",
) -> User:
    """Insert a user and return it refreshed from the database."""
    user = User(
        id=uuid.uuid4(),
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def sample_user(async_session: AsyncSession) -> User:
    """An active operator."""
    return await make_user(async_session)


@pytest.fixture
async def admin_user(async_session: AsyncSession) -> User:
    """An active admin."""
    return await make_user(async_session, email="admin@example.com", role="admin", name="Admin")


@pytest.fixture
async def viewer_user(async_session: AsyncSession) -> User:
    """An active viewer."""
    return await make_user(async_session, email="viewer@example.com", role="viewer", name="Viewer")
