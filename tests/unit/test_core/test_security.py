"""Unit tests for password hashing and session token signing."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from agua_api.core.security import (
    create_session_token,
    decode_session_token,
    hash_password,
    verify_dummy_password,
    verify_password,
)

_SECRET = "test-secret-key-that-is-at-least-32-characters-long"


def _token(**overrides: object) -> str:
    issued = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    kwargs: dict = {
        "session_id": "6f1c1f3e-1d8d-4bb1-8a57-3fce0d6f1b11",
        "user_id": "e3c0e1b2-5f43-4f1c-9d9a-0a7b7b3c2d10",
        "role": "operator",
        "issued_at": issued,
        "expires_at": issued + timedelta(hours=8),
        "secret_key": _SECRET,
    }
    kwargs.update(overrides)
    return create_session_token(**kwargs)


class TestPasswordHashing:
    """Tests for bcrypt hashing helpers."""

    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert hashed.startswith("$2")

    def test_hashes_are_salted(self) -> None:
        assert hash_password("same") != hash_password("same")

    def test_verify_roundtrip(self) -> None:
        hashed = hash_password("s3cret-pass")
        assert verify_password("s3cret-pass", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_dummy_verify_always_fails(self) -> None:
        assert verify_dummy_password("anything") is False


class TestSessionToken:
    """Tests for session token encode/decode."""

    def test_decode_returns_claims(self) -> None:
        payload = decode_session_token(_token(), _SECRET)
        assert payload["sid"] == "6f1c1f3e-1d8d-4bb1-8a57-3fce0d6f1b11"
        assert payload["sub"] == "e3c0e1b2-5f43-4f1c-9d9a-0a7b7b3c2d10"
        assert payload["role"] == "operator"
        assert payload["type"] == "session"

    def test_expired_claim_is_not_enforced(self) -> None:
        """Expiry is decided by the session row, so an old token still decodes."""
        old = datetime(2000, 1, 1, tzinfo=UTC)
        token = _token(issued_at=old, expires_at=old + timedelta(hours=8))
        assert decode_session_token(token, _SECRET)["sid"]

    def test_wrong_key_rejected(self) -> None:
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(_token(), "another-secret-key-that-is-32-characters")

    def test_tampered_token_rejected(self) -> None:
        token = _token()
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}x.{signature}"
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(tampered, _SECRET)

    def test_non_session_token_rejected(self) -> None:
        token = jwt.encode({"sid": "x", "sub": "y", "type": "access"}, _SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError, match="not a session token"):
            decode_session_token(token, _SECRET)

    def test_missing_sid_rejected(self) -> None:
        token = jwt.encode({"sub": "y", "type": "session"}, _SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(token, _SECRET)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token("not-a-token", _SECRET)
