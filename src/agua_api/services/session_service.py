"""Session issuance, validation, and revocation.

Sessions have a fixed absolute lifetime counted from issuance and are never
extended.  The client receives a signed token naming the session row; every
check re-reads the row, so a client that keeps using a token past expiry, or
after logout, is rejected no matter what the token claims.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.core.config import Settings
from agua_api.core.security import create_session_token, decode_session_token
from agua_api.models.security_log import SecurityEventKind
from agua_api.models.session import AuthSession, SessionEndReason
from agua_api.models.user import User
from agua_api.services.audit_service import record_event


class SessionStatus(enum.StrEnum):
    """Result of validating a presented session."""

    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class SessionCheck:
    """A validation status plus the session row when one was found."""

    status: SessionStatus
    session: AuthSession | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is SessionStatus.VALID


_INVALID = SessionCheck(SessionStatus.INVALID)


async def issue_session(
    db: AsyncSession,
    user: User,
    *,
    now: datetime,
    settings: Settings,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> tuple[AuthSession, str]:
    """Create a session for ``user`` expiring exactly one lifetime after ``now``.

    Args:
        db: The database session.
        user: The authenticated user; its current role is snapshotted.
        now: Issuance time.
        settings: Application settings (lifetime, signing key).
        ip_address: Origin of the login.
        user_agent: Client user agent.
        commit: Commit immediately. The authenticator passes False and
            commits the whole login outcome at once.

    Returns:
        Tuple of (session row, signed token for the client).
    """
    record = AuthSession(
        id=uuid.uuid4(),
        user_id=user.id,
        role=user.role,
        issued_at=now,
        expires_at=now + timedelta(hours=settings.session_lifetime_hours),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(record)

    token = create_session_token(
        session_id=str(record.id),
        user_id=str(user.id),
        role=record.role,
        issued_at=record.issued_at,
        expires_at=record.expires_at,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    await record_event(
        db,
        SecurityEventKind.SESSION_ISSUED,
        user_id=user.id,
        details={"session_id": str(record.id), "role": record.role, "expires_at": record.expires_at.isoformat()},
        ip_address=ip_address,
        user_agent=user_agent,
        now=now,
        commit=False,
    )
    if commit:
        await db.commit()
    return record, token


async def validate_session(
    db: AsyncSession,
    token: str,
    *,
    now: datetime,
    settings: Settings,
    ip_address: str | None = None,
) -> SessionCheck:
    """Classify a presented session token as VALID, EXPIRED, or INVALID.

    The first check that finds a session past its expiry ends it and records
    ``SESSION_EXPIRED``; later checks of the same token keep answering EXPIRED.

    Args:
        db: The database session.
        token: The token the client presented.
        now: Check time.
        settings: Application settings (signing key).
        ip_address: Origin of the request, recorded on expiry.

    Returns:
        The status and, unless INVALID, the session row.
    """
    try:
        payload = decode_session_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
        session_id = uuid.UUID(str(payload["sid"]))
    except (jwt.InvalidTokenError, ValueError):
        return _INVALID

    record = await db.get(AuthSession, session_id)
    if record is None or str(record.user_id) != str(payload["sub"]):
        return _INVALID

    if record.ended_at is not None:
        if record.end_reason == SessionEndReason.EXPIRED:
            return SessionCheck(SessionStatus.EXPIRED, record)
        return _INVALID

    if record.is_expired(now):
        record.ended_at = now
        record.end_reason = SessionEndReason.EXPIRED
        await record_event(
            db,
            SecurityEventKind.SESSION_EXPIRED,
            user_id=record.user_id,
            details={
                "session_id": str(record.id),
                "lifetime_seconds": int((record.expires_at - record.issued_at).total_seconds()),
            },
            ip_address=ip_address,
            now=now,
            commit=False,
        )
        await db.commit()
        return SessionCheck(SessionStatus.EXPIRED, record)

    record.last_validated_at = now
    await db.commit()
    return SessionCheck(SessionStatus.VALID, record)


async def revoke_session(
    db: AsyncSession,
    record: AuthSession,
    *,
    now: datetime,
    reason: SessionEndReason = SessionEndReason.LOGOUT,
    ip_address: str | None = None,
    commit: bool = True,
) -> None:
    """End a session immediately and record how long it lasted.

    Revoking an already ended session is a no-op.
    """
    if record.ended_at is not None:
        return
    record.ended_at = now
    record.end_reason = reason
    await record_event(
        db,
        SecurityEventKind.SESSION_REVOKED,
        user_id=record.user_id,
        details={
            "session_id": str(record.id),
            "reason": reason.value,
            "duration_seconds": int((now - record.issued_at).total_seconds()),
        },
        ip_address=ip_address,
        now=now,
        commit=False,
    )
    if commit:
        await db.commit()


async def revoke_user_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    now: datetime,
    reason: SessionEndReason,
    commit: bool = True,
) -> int:
    """End every open, unexpired session of a user.

    Returns:
        Number of sessions revoked.
    """
    result = await db.execute(
        select(AuthSession).where(
            AuthSession.user_id == user_id,
            AuthSession.ended_at.is_(None),
            AuthSession.expires_at > now,
        )
    )
    records = list(result.scalars().all())
    for record in records:
        await revoke_session(db, record, now=now, reason=reason, commit=False)
    if commit:
        await db.commit()
    return len(records)
