"""AuthSession model: server-side record of an issued login session."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agua_api.models.base import Base, UTCDateTime, UUIDMixin


class SessionEndReason(enum.StrEnum):
    """Why a session stopped being usable."""

    LOGOUT = "logout"
    EXPIRED = "expired"
    ROLE_CHANGED = "role_changed"
    DEACTIVATED = "deactivated"


class AuthSession(Base, UUIDMixin):
    """A login session with a fixed absolute lifetime.

    The role is a snapshot taken at issuance. ``expires_at`` is set once and
    never moved. ``ended_at`` marks logout, revocation, or detected expiry.
    """

    __tablename__ = "sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    end_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    __table_args__ = (
        Index("ix_sessions_user_id", "user_id"),
        Index("ix_sessions_issued_at", "issued_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        """Expired from the instant ``now`` reaches ``expires_at``."""
        return now >= self.expires_at
