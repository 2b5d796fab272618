"""LoginAttempt model: the append-only ledger behind login rate limiting."""

from datetime import datetime

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agua_api.models.base import Base, UTCDateTime, UUIDMixin, utcnow


class LoginAttempt(Base, UUIDMixin):
    """One row per login call, successful or not. Never updated or deleted.

    Keyed by email rather than user id because attempts may target emails
    that do not exist.
    """

    __tablename__ = "login_attempts"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    __table_args__ = (
        Index("ix_login_attempts_email_attempted_at", "email", "attempted_at"),
        Index("ix_login_attempts_attempted_at", "attempted_at"),
    )
