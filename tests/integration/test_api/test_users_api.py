"""Integration tests for user administration endpoints."""

import uuid

import pytest
from httpx import AsyncClient

from agua_api.models.user import User
from tests.conftest import TEST_PASSWORD
from tests.integration.test_api.conftest import auth_header, login_token

pytestmark = pytest.mark.integration

USERS = "/api/v1/users"


class TestUsersAuthorization:
    """Capability checks on /users."""

    @pytest.mark.asyncio
    async def test_requires_session(self, client: AsyncClient) -> None:
        response = await client.get(USERS)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_operator_denied(self, client: AsyncClient, sample_user: User) -> None:
        token = await login_token(client, sample_user)

        response = await client.get(USERS, headers=auth_header(token))

        assert response.status_code == 403
        assert response.json() == {"detail": "You do not have permission to perform this action"}

    @pytest.mark.asyncio
    async def test_denial_is_audited(self, client: AsyncClient, sample_user: User, admin_user: User) -> None:
        operator_token = await login_token(client, sample_user)
        await client.get(USERS, headers=auth_header(operator_token))
        admin_token = await login_token(client, admin_user)

        response = await client.get(
            "/api/v1/security-events", params={"event_type": "AUTHZ_DENIED"}, headers=auth_header(admin_token)
        )

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["user_id"] == str(sample_user.id)
        assert items[0]["details"]["capability"] == "manage-users"


class TestUsersCrud:
    """Admin operations on /users."""

    @pytest.mark.asyncio
    async def test_list_users(self, client: AsyncClient, admin_user: User, sample_user: User) -> None:
        token = await login_token(client, admin_user)

        response = await client.get(USERS, headers=auth_header(token))

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["total"] == 2
        assert {u["email"] for u in body["items"]} == {admin_user.email, sample_user.email}

    @pytest.mark.asyncio
    async def test_create_user_then_login(self, client: AsyncClient, admin_user: User) -> None:
        token = await login_token(client, admin_user)
        payload = {"email": "reader@example.com", "name": "Meter Reader", "password": "readings-2026", "role": "operator"}

        response = await client.post(USERS, json=payload, headers=auth_header(token))

        assert response.status_code == 201
        assert response.json()["role"] == "operator"
        login = await client.post(
            "/api/v1/auth/login", json={"email": "reader@example.com", "password": "readings-2026"}
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_create_duplicate_conflicts(self, client: AsyncClient, admin_user: User) -> None:
        token = await login_token(client, admin_user)
        payload = {"email": admin_user.email, "name": "Again", "password": "password123", "role": "viewer"}

        response = await client.post(USERS, json=payload, headers=auth_header(token))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_role(self, client: AsyncClient, admin_user: User) -> None:
        token = await login_token(client, admin_user)
        payload = {"email": "x@example.com", "name": "X", "password": "password123", "role": "root"}

        response = await client.post(USERS, json=payload, headers=auth_header(token))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_deactivate_ends_sessions(self, client: AsyncClient, admin_user: User, sample_user: User) -> None:
        operator_token = await login_token(client, sample_user)
        admin_token = await login_token(client, admin_user)

        response = await client.patch(
            f"{USERS}/{sample_user.id}", json={"is_active": False}, headers=auth_header(admin_token)
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        status = await client.get("/api/v1/auth/session", headers=auth_header(operator_token))
        assert status.status_code == 401
        login = await client.post("/api/v1/auth/login", json={"email": sample_user.email, "password": TEST_PASSWORD})
        assert login.status_code == 401

    @pytest.mark.asyncio
    async def test_update_unknown_user_404(self, client: AsyncClient, admin_user: User) -> None:
        token = await login_token(client, admin_user)

        response = await client.patch(f"{USERS}/{uuid.uuid4()}", json={"name": "Ghost"}, headers=auth_header(token))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unlock_clears_lockout(self, client: AsyncClient, admin_user: User, sample_user: User) -> None:
        for _ in range(3):
            await client.post("/api/v1/auth/login", json={"email": sample_user.email, "password": "wrong-password"})
        locked = await client.post("/api/v1/auth/login", json={"email": sample_user.email, "password": TEST_PASSWORD})
        assert locked.status_code == 423
        admin_token = await login_token(client, admin_user)

        response = await client.post(f"{USERS}/{sample_user.id}/unlock", headers=auth_header(admin_token))

        assert response.status_code == 200
        assert response.json()["failed_login_attempts"] == 0
        assert response.json()["locked_until"] is None
