"""Fixtures for HTTP-level tests: the real app wired to the test database."""

from collections.abc import AsyncGenerator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agua_api.core.config import Settings, get_settings
from agua_api.core.dependencies import get_async_session
from agua_api.main import create_app
from agua_api.models.user import User
from tests.conftest import TEST_PASSWORD


@pytest.fixture
def app(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """The application with database and settings dependencies overridden."""
    with patch("agua_api.main.get_settings", return_value=settings):
        application = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_session] = override_session
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def login_token(client: AsyncClient, user: User, password: str = TEST_PASSWORD) -> str:
    """Log ``user`` in over HTTP and return the bearer token."""
    response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
