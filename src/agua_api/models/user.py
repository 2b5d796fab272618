"""User model: credentials, role, and login-throttling state."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from agua_api.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class UserRole(enum.StrEnum):
    """The four roles a user can hold."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


class User(Base, UUIDMixin, TimestampMixin):
    """A person allowed to log in.

    Attributes:
        email: Login identifier, unique.
        password_hash: bcrypt hash, never the plaintext.
        name: Display name.
        role: One of ``UserRole``.
        is_active: Deactivated users cannot log in; users are never deleted.
        failed_login_attempts: Consecutive failures since the last success.
        locked_until: Lockout expiry; a future value means the account is locked.
        last_login_at: Time of the last successful login.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1", index=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('super_admin', 'admin', 'operator', 'viewer')",
            name="ck_users_role",
        ),
    )

    def is_locked(self, now: datetime) -> bool:
        """True while the lockout expiry lies strictly in the future."""
        return self.locked_until is not None and self.locked_until > now
