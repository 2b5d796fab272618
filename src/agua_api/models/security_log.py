"""SecurityLog model for the immutable security audit trail."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agua_api.models.base import Base, JSONType, UTCDateTime, UUIDMixin, utcnow


class SecurityEventKind(enum.StrEnum):
    """Security-relevant occurrences that are always recorded."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    RATE_LIMITED = "RATE_LIMITED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    SESSION_ISSUED = "SESSION_ISSUED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_REVOKED = "SESSION_REVOKED"
    AUTHZ_DENIED = "AUTHZ_DENIED"


class SecurityLog(Base, UUIDMixin):
    """Immutable record of a security event. Write-only (no updates or deletes)."""

    __tablename__ = "security_logs"

    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_security_logs_user_id", "user_id"),
        Index("ix_security_logs_timestamp", "timestamp"),
        Index("ix_security_logs_event_type", "event_type"),
    )
