"""Login attempt ledger: append-only facts queried over a trailing window."""

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.models.login_attempt import LoginAttempt


def normalize_email(email: str) -> str:
    """Canonical ledger key for an email: trimmed and lowercased."""
    return email.strip().lower()


async def record_attempt(
    session: AsyncSession,
    email: str,
    *,
    success: bool,
    ip_address: str | None,
    now: datetime,
) -> LoginAttempt:
    """Append one attempt to the ledger without committing.

    The caller commits together with the rest of the login outcome.
    """
    attempt = LoginAttempt(
        email=normalize_email(email),
        ip_address=ip_address,
        attempted_at=now,
        success=success,
    )
    session.add(attempt)
    return attempt


async def count_recent_failures(
    session: AsyncSession,
    email: str,
    *,
    now: datetime,
    window: timedelta,
) -> int:
    """Count failed attempts for ``email`` in the closed interval ``[now - window, now]``.

    An attempt exactly ``window`` old still counts.
    """
    window_start = now - window
    result = await session.execute(
        select(func.count(LoginAttempt.id)).where(
            LoginAttempt.email == normalize_email(email),
            LoginAttempt.success.is_(False),
            LoginAttempt.attempted_at >= window_start,
            LoginAttempt.attempted_at <= now,
        )
    )
    return result.scalar_one()
