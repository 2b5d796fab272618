"""ORM model registry. Import every model so Alembic autogenerate discovers them."""

from agua_api.models.login_attempt import LoginAttempt
from agua_api.models.security_log import SecurityEventKind, SecurityLog
from agua_api.models.session import AuthSession, SessionEndReason
from agua_api.models.user import User, UserRole

__all__ = [
    "AuthSession",
    "LoginAttempt",
    "SecurityEventKind",
    "SecurityLog",
    "SessionEndReason",
    "User",
    "UserRole",
]
