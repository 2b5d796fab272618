"""Password hashing and session token signing.

Uses passlib with bcrypt for password hashing and PyJWT for the signed
session token handed to clients.  The token only identifies a server-side
session row; its expiry claim is informational and never trusted.
"""

from datetime import datetime

import jwt
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_TOKEN_TYPE = "session"


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt.

    Args:
        password: The plaintext password to hash.

    Returns:
        The bcrypt-hashed password string.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash.

    Args:
        plain_password: The plaintext password to verify.
        hashed_password: The bcrypt hash to verify against.

    Returns:
        True if the password matches, False otherwise.
    """
    return pwd_context.verify(plain_password, hashed_password)


def verify_dummy_password(plain_password: str) -> bool:
    """Spend the same hashing work as a real verification, then fail.

    Called for unknown or inactive accounts so response timing does not
    reveal whether an email is registered.
    """
    pwd_context.dummy_verify()
    return False


def create_session_token(
    *,
    session_id: str,
    user_id: str,
    role: str,
    issued_at: datetime,
    expires_at: datetime,
    secret_key: str,
    algorithm: str = "HS256",
) -> str:
    """Sign the token a client presents on every privileged call.

    Args:
        session_id: Server-side session row id.
        user_id: Owning user id.
        role: Role snapshot taken at issuance.
        issued_at: Issuance time.
        expires_at: Absolute expiry time.
        secret_key: Secret key for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The encoded JWT string.
    """
    payload = {
        "sid": session_id,
        "sub": user_id,
        "role": role,
        "iat": issued_at,
        "exp": expires_at,
        "type": SESSION_TOKEN_TYPE,
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_session_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict:
    """Check the signature of a session token and return its payload.

    Expiry is not verified here: the session row is the only authority on
    whether a session is still alive.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The decoded token payload.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, tampered with,
            missing required claims, or not a session token.
    """
    payload = jwt.decode(
        token,
        secret_key,
        algorithms=[algorithm],
        options={"verify_exp": False, "verify_iat": False, "require": ["sid", "sub", "type"]},
    )
    if payload.get("type") != SESSION_TOKEN_TYPE:
        msg = "Token is not a session token"
        raise jwt.InvalidTokenError(msg)
    return payload
