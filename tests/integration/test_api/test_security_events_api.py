"""Integration tests for the security audit trail endpoint."""

import pytest
from httpx import AsyncClient

from agua_api.models.user import User
from tests.integration.test_api.conftest import auth_header, login_token

pytestmark = pytest.mark.integration

EVENTS = "/api/v1/security-events"


@pytest.mark.asyncio
async def test_viewer_cannot_read_audit_log(client: AsyncClient, viewer_user: User) -> None:
    token = await login_token(client, viewer_user)

    response = await client.get(EVENTS, headers=auth_header(token))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_login_outcomes_are_recorded(client: AsyncClient, admin_user: User, sample_user: User) -> None:
    await client.post(
        "/api/v1/auth/login",
        json={"email": sample_user.email, "password": "wrong-password"},
        headers={"User-Agent": "meter-app/1.0", "X-Real-IP": "198.51.100.7"},
    )
    token = await login_token(client, admin_user)

    response = await client.get(EVENTS, params={"event_type": "LOGIN_FAILURE"}, headers=auth_header(token))

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    event = body["items"][0]
    assert event["user_id"] == str(sample_user.id)
    assert event["ip_address"] == "198.51.100.7"
    assert event["user_agent"] == "meter-app/1.0"
    assert event["details"]["failed_attempts"] == 1


@pytest.mark.asyncio
async def test_lists_newest_first_with_pagination(client: AsyncClient, admin_user: User) -> None:
    token = await login_token(client, admin_user)

    response = await client.get(EVENTS, params={"page_size": 1}, headers=auth_header(token))

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] >= 2
    assert len(body["items"]) == 1
    assert body["items"][0]["event_type"] in {"SESSION_ISSUED", "LOGIN_SUCCESS"}


@pytest.mark.asyncio
async def test_rejects_unknown_event_type(client: AsyncClient, admin_user: User) -> None:
    token = await login_token(client, admin_user)

    response = await client.get(EVENTS, params={"event_type": "NOPE"}, headers=auth_header(token))

    assert response.status_code == 422
