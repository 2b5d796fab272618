"""Tests for CORS, security headers, and request throttling middleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from agua_api.api.middleware import (
    SECURITY_HEADERS,
    RequestThrottleMiddleware,
    SecurityHeadersMiddleware,
    get_client_ip,
    setup_cors,
)
from agua_api.core.config import Settings


def _create_test_app() -> FastAPI:
    """Create a minimal FastAPI app for middleware testing."""
    app = FastAPI()

    @app.get("/test")
    async def test_route() -> dict:
        return {"ok": True}

    return app


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = _create_test_app()
        app.add_middleware(SecurityHeadersMiddleware)
        return TestClient(app)

    def test_x_content_type_options(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_x_frame_options(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_x_xss_protection(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-XSS-Protection"] == "1; mode=block"

    def test_content_security_policy(self, client: TestClient) -> None:
        response = client.get("/test")
        assert "default-src 'self'" in response.headers["Content-Security-Policy"]

    def test_referrer_policy(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_all_security_headers_present(self, client: TestClient) -> None:
        response = client.get("/test")
        for header in SECURITY_HEADERS:
            assert header in response.headers, f"Missing security header: {header}"

    def test_headers_added_to_error_responses(self, client: TestClient) -> None:
        response = client.get("/missing")
        assert response.status_code == 404
        assert response.headers["X-Frame-Options"] == "DENY"


class TestRequestThrottleMiddleware:
    """Tests for RequestThrottleMiddleware."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = _create_test_app()
        app.add_middleware(RequestThrottleMiddleware, requests_per_minute=5)
        return TestClient(app)

    def test_requests_within_limit_succeed(self, client: TestClient) -> None:
        for _ in range(5):
            response = client.get("/test")
            assert response.status_code == 200

    def test_request_over_limit_returns_429(self, client: TestClient) -> None:
        for _ in range(5):
            client.get("/test")

        response = client.get("/test")
        assert response.status_code == 429
        assert response.json() == {"detail": "Too many requests"}
        assert response.headers["Retry-After"] == "60"

    def test_window_expires(self) -> None:
        """Requests older than 60 seconds no longer count."""
        app = _create_test_app()
        app.add_middleware(RequestThrottleMiddleware, requests_per_minute=2)
        client = TestClient(app)

        with patch("agua_api.api.middleware.time.monotonic", return_value=1000.0):
            assert client.get("/test").status_code == 200
            assert client.get("/test").status_code == 200
            assert client.get("/test").status_code == 429

        with patch("agua_api.api.middleware.time.monotonic", return_value=1061.0):
            assert client.get("/test").status_code == 200

    def test_different_proxy_ips_have_separate_limits(self) -> None:
        app = _create_test_app()
        app.add_middleware(RequestThrottleMiddleware, requests_per_minute=2)
        client = TestClient(app)

        for _ in range(2):
            assert client.get("/test", headers={"CF-Connecting-IP": "203.0.113.1"}).status_code == 200
        assert client.get("/test", headers={"CF-Connecting-IP": "203.0.113.1"}).status_code == 429
        assert client.get("/test", headers={"CF-Connecting-IP": "203.0.113.2"}).status_code == 200


class TestSetupCors:
    """Tests for setup_cors."""

    def test_allowed_origin_echoed(self) -> None:
        app = _create_test_app()
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            jwt_secret_key="test-secret-key-not-for-production-use",
            cors_origins="https://agua.example",
        )
        setup_cors(app, settings)
        client = TestClient(app)

        response = client.get("/test", headers={"Origin": "https://agua.example"})
        assert response.headers["access-control-allow-origin"] == "https://agua.example"

        response = client.get("/test", headers={"Origin": "https://evil.example"})
        assert "access-control-allow-origin" not in response.headers


def _make_request(headers: dict[str, str] | None = None, client_host: str | None = "127.0.0.1") -> Request:
    """Build a minimal Starlette Request with given headers and client address."""
    scope: dict = {
        "type": "http",
        "method": "GET",
        "path": "/test",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    if client_host is not None:
        scope["client"] = (client_host, 0)
    return Request(scope)


class TestGetClientIp:
    """Tests for the get_client_ip helper function."""

    def test_cf_connecting_ip_takes_priority(self) -> None:
        request = _make_request(
            headers={
                "CF-Connecting-IP": "203.0.113.1",
                "X-Forwarded-For": "198.51.100.1, 10.0.0.1",
                "X-Real-IP": "192.0.2.1",
            }
        )
        assert get_client_ip(request) == "203.0.113.1"

    def test_x_forwarded_for_uses_leftmost_ip(self) -> None:
        request = _make_request(headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1, 10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.1"

    def test_x_real_ip_fallback(self) -> None:
        request = _make_request(headers={"X-Real-IP": "203.0.113.1"})
        assert get_client_ip(request) == "203.0.113.1"

    def test_falls_back_to_client_host(self) -> None:
        request = _make_request(client_host="10.0.0.1")
        assert get_client_ip(request) == "10.0.0.1"

    def test_returns_unknown_when_no_client(self) -> None:
        request = _make_request(headers={}, client_host=None)
        assert get_client_ip(request) == "unknown"

    def test_no_trusted_headers_uses_socket_address(self) -> None:
        request = _make_request(headers={"X-Forwarded-For": "203.0.113.1"}, client_host="10.0.0.1")
        assert get_client_ip(request, []) == "10.0.0.1"

    def test_empty_header_value_skipped(self) -> None:
        request = _make_request(headers={"CF-Connecting-IP": "  ", "X-Real-IP": "203.0.113.1"})
        assert get_client_ip(request) == "203.0.113.1"
