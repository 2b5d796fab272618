"""Login rate limiting and account lockout policy.

Two independent throttles guard the login endpoint:

* Lockout: a per-account state set by the authenticator after repeated
  consecutive password failures.  While ``locked_until`` is in the future
  every attempt is denied, even with the correct password.
* Rate limit: a trailing window over the attempt ledger, keyed by email, so
  it also throttles guessing against emails that do not exist.  Denied
  attempts are themselves recorded as failures, so continued knocking keeps
  the window full.

Lockout is checked first and wins over the rate limit.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.core.config import Settings
from agua_api.models.user import User
from agua_api.services.attempt_service import count_recent_failures, normalize_email


class LoginDecision(enum.StrEnum):
    """Outcome of the pre-authentication throttle check."""

    ALLOW = "allow"
    DENY_RATE_LIMITED = "deny_rate_limited"
    DENY_LOCKED = "deny_locked"


@dataclass(frozen=True)
class LoginPolicy:
    """Thresholds shared by the rate limiter and the authenticator."""

    max_failed_attempts: int = 3
    window: timedelta = timedelta(minutes=5)
    lockout: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoginPolicy":
        return cls(
            max_failed_attempts=settings.max_failed_attempts,
            window=timedelta(minutes=settings.rate_limit_window_minutes),
            lockout=timedelta(minutes=settings.lockout_minutes),
        )


def decide(
    *,
    locked_until: datetime | None,
    recent_failures: int,
    now: datetime,
    policy: LoginPolicy,
) -> LoginDecision:
    """Pure decision over an account's lockout expiry and its windowed failure count."""
    if locked_until is not None and locked_until > now:
        return LoginDecision.DENY_LOCKED
    if recent_failures >= policy.max_failed_attempts:
        return LoginDecision.DENY_RATE_LIMITED
    return LoginDecision.ALLOW


async def evaluate(
    session: AsyncSession,
    email: str,
    *,
    now: datetime,
    policy: LoginPolicy,
    user: User | None = None,
) -> LoginDecision:
    """Decide whether a login attempt for ``email`` may proceed to password verification.

    Args:
        session: The database session.
        email: The email being attempted.
        now: Decision time.
        policy: Thresholds to apply.
        user: The active user for ``email`` if the caller already loaded it.

    Returns:
        ALLOW, DENY_LOCKED, or DENY_RATE_LIMITED.
    """
    email_key = normalize_email(email)
    if user is not None:
        locked_until = user.locked_until
    else:
        result = await session.execute(
            select(User.locked_until).where(User.email == email_key, User.is_active.is_(True))
        )
        locked_until = result.scalar_one_or_none()

    if locked_until is not None and locked_until > now:
        return LoginDecision.DENY_LOCKED

    recent_failures = await count_recent_failures(session, email_key, now=now, window=policy.window)
    return decide(locked_until=locked_until, recent_failures=recent_failures, now=now, policy=policy)
