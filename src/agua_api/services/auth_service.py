"""Authentication and user management service.

Handles the login flow (throttling, credential verification, counter
updates, session issuance) and administrative user provisioning.
"""

import asyncio
import contextlib
import secrets
import uuid
from datetime import datetime

from loguru import logger
from sqlalchemy import case, func, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from agua_api.core.config import RoleChangePolicy, Settings
from agua_api.core.exceptions import AccountLocked, InvalidCredentials, RateLimited, ServiceUnavailable
from agua_api.core.security import hash_password, verify_dummy_password, verify_password
from agua_api.models.base import UTCDateTime, utcnow
from agua_api.models.security_log import SecurityEventKind
from agua_api.models.session import SessionEndReason
from agua_api.models.user import User, UserRole
from agua_api.schemas.auth import SessionDescriptor, UserCreateRequest
from agua_api.services import session_service
from agua_api.services.attempt_service import normalize_email, record_attempt
from agua_api.services.audit_service import record_event
from agua_api.services.rate_limit_service import LoginDecision, LoginPolicy, evaluate

_UPDATABLE_USER_FIELDS: frozenset[str] = frozenset({"name", "role", "is_active"})

DEMO_USERS: tuple[tuple[str, str, UserRole], ...] = (
    ("admin", "System Administrator", UserRole.SUPER_ADMIN),
    ("demo", "Demo Admin", UserRole.ADMIN),
    ("operator", "Demo Operator", UserRole.OPERATOR),
    ("viewer", "Demo Viewer", UserRole.VIEWER),
)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Return the user registered under ``email`` regardless of status."""
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def login(
    session: AsyncSession,
    email: str,
    password: str,
    *,
    settings: Settings,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> SessionDescriptor:
    """Authenticate a user and issue a session.

    Every outcome (attempt row, counters, audit events, session) is committed
    before this returns or raises.  Logins for the same account are
    serialized on the user row.  Storage failures, hashing failures, and
    running past ``login_timeout_seconds`` roll back and deny the login.

    Args:
        session: The database session.
        email: The email presented by the client.
        password: The plaintext password presented by the client.
        settings: Application settings.
        ip_address: Origin of the request.
        user_agent: Client user agent.
        now: Decision time; defaults to the current UTC time.

    Returns:
        The session descriptor for the client.

    Raises:
        RateLimited: Too many failures for this email in the trailing window.
        AccountLocked: The account is inside its lockout period.
        InvalidCredentials: Unknown email, inactive account, or wrong password.
        ServiceUnavailable: The login could not be completed safely.
    """
    now = now or utcnow()
    try:
        async with asyncio.timeout(settings.login_timeout_seconds):
            return await _login(
                session,
                email,
                password,
                settings=settings,
                ip_address=ip_address,
                user_agent=user_agent,
                now=now,
            )
    except (TimeoutError, SQLAlchemyError, ValueError) as exc:
        logger.opt(exception=exc).error("Login for {} failed closed: {}", normalize_email(email), type(exc).__name__)
        with contextlib.suppress(SQLAlchemyError):
            await session.rollback()
        raise ServiceUnavailable from exc


async def _login(
    session: AsyncSession,
    email: str,
    password: str,
    *,
    settings: Settings,
    ip_address: str | None,
    user_agent: str | None,
    now: datetime,
) -> SessionDescriptor:
    email_key = normalize_email(email)
    policy = LoginPolicy.from_settings(settings)
    user = await _lock_active_user(session, email_key)

    decision = await evaluate(session, email_key, now=now, policy=policy, user=user)
    if decision is not LoginDecision.ALLOW:
        locked = decision is LoginDecision.DENY_LOCKED
        await record_attempt(session, email_key, success=False, ip_address=ip_address, now=now)
        await record_event(
            session,
            SecurityEventKind.ACCOUNT_LOCKED if locked else SecurityEventKind.RATE_LIMITED,
            user_id=user.id if user is not None else None,
            details={"email": email_key, "decision": decision.value},
            ip_address=ip_address,
            user_agent=user_agent,
            now=now,
            commit=False,
        )
        await session.commit()
        raise AccountLocked if locked else RateLimited

    if user is None:
        await asyncio.to_thread(verify_dummy_password, password)
        await _record_failure(session, email_key, None, {"email": email_key}, ip_address, user_agent, now)
        await session.commit()
        raise InvalidCredentials

    if not await asyncio.to_thread(verify_password, password, user.password_hash):
        failures, locked_until = await _register_failure(session, user, now=now, policy=policy)
        await _record_failure(
            session,
            email_key,
            user.id,
            {"email": email_key, "failed_attempts": failures},
            ip_address,
            user_agent,
            now,
        )
        if failures >= policy.max_failed_attempts and locked_until is not None:
            await record_event(
                session,
                SecurityEventKind.ACCOUNT_LOCKED,
                user_id=user.id,
                details={"email": email_key, "failed_attempts": failures, "locked_until": locked_until.isoformat()},
                ip_address=ip_address,
                user_agent=user_agent,
                now=now,
                commit=False,
            )
        await session.commit()
        raise InvalidCredentials

    if not await _register_success(session, user, now=now):
        await record_attempt(session, email_key, success=False, ip_address=ip_address, now=now)
        await record_event(
            session,
            SecurityEventKind.ACCOUNT_LOCKED,
            user_id=user.id,
            details={"email": email_key, "decision": LoginDecision.DENY_LOCKED.value},
            ip_address=ip_address,
            user_agent=user_agent,
            now=now,
            commit=False,
        )
        await session.commit()
        raise AccountLocked

    await record_attempt(session, email_key, success=True, ip_address=ip_address, now=now)
    await record_event(
        session,
        SecurityEventKind.LOGIN_SUCCESS,
        user_id=user.id,
        details={"email": email_key},
        ip_address=ip_address,
        user_agent=user_agent,
        now=now,
        commit=False,
    )
    record, token = await session_service.issue_session(
        session,
        user,
        now=now,
        settings=settings,
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )
    await session.commit()

    return SessionDescriptor(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=record.role,
        expires_at=record.expires_at,
        access_token=token,
        check_interval_seconds=settings.session_check_interval_seconds,
    )


async def _lock_active_user(session: AsyncSession, email_key: str) -> User | None:
    """Load the active user for ``email_key`` and hold its row until commit.

    The login transaction opens with a no-op UPDATE of the row.  It takes the
    row lock on PostgreSQL and the write lock on SQLite, where
    ``SELECT ... FOR UPDATE`` is not available.  Concurrent logins for one
    account therefore run one at a time, each seeing the committed outcome
    of the one before.
    """
    claimed = await session.execute(
        update(User)
        .where(User.email == email_key, User.is_active.is_(True))
        .values(failed_login_attempts=User.failed_login_attempts, updated_at=User.updated_at)
        .returning(User.id)
        .execution_options(synchronize_session=False)
    )
    user_id = claimed.scalar_one_or_none()
    if user_id is None:
        return None
    result = await session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _record_failure(
    session: AsyncSession,
    email_key: str,
    user_id: uuid.UUID | None,
    details: dict,
    ip_address: str | None,
    user_agent: str | None,
    now: datetime,
) -> None:
    await record_attempt(session, email_key, success=False, ip_address=ip_address, now=now)
    await record_event(
        session,
        SecurityEventKind.LOGIN_FAILURE,
        user_id=user_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
        now=now,
        commit=False,
    )


async def _register_failure(
    session: AsyncSession,
    user: User,
    *,
    now: datetime,
    policy: LoginPolicy,
) -> tuple[int, datetime | None]:
    """Increment the failure counter and lock the account at the threshold.

    A single UPDATE computes both columns from the row's current values, so
    concurrent failures for the same user each count.

    Returns:
        Tuple of (new failure count, lockout expiry).
    """
    new_count = User.failed_login_attempts + 1
    stmt = (
        update(User)
        .where(User.id == user.id)
        .values(
            failed_login_attempts=new_count,
            locked_until=case(
                (new_count >= policy.max_failed_attempts, literal(now + policy.lockout, UTCDateTime())),
                else_=User.locked_until,
            ),
        )
        .returning(User.failed_login_attempts, User.locked_until)
        .execution_options(synchronize_session=False)
    )
    row = (await session.execute(stmt)).one()
    set_committed_value(user, "failed_login_attempts", row.failed_login_attempts)
    set_committed_value(user, "locked_until", row.locked_until)
    return row.failed_login_attempts, row.locked_until


async def _register_success(session: AsyncSession, user: User, *, now: datetime) -> bool:
    """Reset the failure counter and stamp the login time unless the account is locked.

    Returns:
        False when the row carries a lock that is still in force, in which
        case nothing was changed.
    """
    result = await session.execute(
        update(User)
        .where(
            User.id == user.id,
            or_(User.locked_until.is_(None), User.locked_until <= literal(now, UTCDateTime())),
        )
        .values(failed_login_attempts=0, locked_until=None, last_login_at=now)
        .returning(User.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        return False
    set_committed_value(user, "failed_login_attempts", 0)
    set_committed_value(user, "locked_until", None)
    set_committed_value(user, "last_login_at", now)
    return True


async def create_user(session: AsyncSession, request: UserCreateRequest) -> User:
    """Create a new user.

    Args:
        session: The database session.
        request: User creation request data.

    Returns:
        The created User.

    Raises:
        ValueError: If the email already exists.
    """
    email = normalize_email(request.email)
    existing = await session.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        msg = "Email already exists"
        raise ValueError(msg)

    user = User(
        email=email,
        name=request.name,
        password_hash=hash_password(request.password),
        role=request.role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("Created user {} with role {}", user.email, user.role)
    return user


async def list_users(session: AsyncSession, page: int = 1, page_size: int = 20) -> tuple[list[User], int]:
    """List users with pagination.

    Args:
        session: The database session.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (users list, total count).
    """
    count_result = await session.execute(select(func.count(User.id)))
    total = count_result.scalar_one()

    offset = (page - 1) * page_size
    result = await session.execute(select(User).offset(offset).limit(page_size).order_by(User.created_at))
    users = list(result.scalars().all())
    return users, total


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Get a user by ID.

    Args:
        session: The database session.
        user_id: The UUID of the user to retrieve.

    Returns:
        The User if found, None otherwise.
    """
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def update_user(
    session: AsyncSession,
    user: User,
    updates: dict,
    *,
    settings: Settings,
    now: datetime | None = None,
) -> User:
    """Update a user's name, role, or active flag.

    Deactivation ends every open session of the user.  A role change ends
    them only under the ``revoke`` role-change policy; under ``snapshot``
    open sessions keep the role they were issued with until they expire.

    Args:
        session: The database session.
        user: The User to update.
        updates: Dictionary of field names to new values.
        settings: Application settings (role-change policy).
        now: Update time; defaults to the current UTC time.

    Returns:
        The updated User.
    """
    now = now or utcnow()
    role_changed = "role" in updates and updates["role"] is not None and updates["role"] != user.role
    deactivated = updates.get("is_active") is False and user.is_active

    for field, value in updates.items():
        if field in _UPDATABLE_USER_FIELDS and value is not None:
            setattr(user, field, value)

    if deactivated:
        await session_service.revoke_user_sessions(
            session, user.id, now=now, reason=SessionEndReason.DEACTIVATED, commit=False
        )
    elif role_changed and settings.role_change_policy is RoleChangePolicy.REVOKE:
        await session_service.revoke_user_sessions(
            session, user.id, now=now, reason=SessionEndReason.ROLE_CHANGED, commit=False
        )

    await session.commit()
    await session.refresh(user)
    return user


async def unlock_user(session: AsyncSession, user: User) -> User:
    """Clear a user's failure counter and lockout (administrative override).

    Args:
        session: The database session.
        user: The User to unlock.

    Returns:
        The updated User.
    """
    await session.execute(
        update(User)
        .where(User.id == user.id)
        .values(failed_login_attempts=0, locked_until=None)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    await session.refresh(user)
    logger.info("Unlocked user {}", user.email)
    return user


async def seed_demo_users(session: AsyncSession, domain: str = "agua.local") -> list[tuple[User, str]]:
    """Create one user per role if absent, each with a freshly generated password.

    Existing emails are left untouched, so this is safe to run repeatedly.

    Args:
        session: The database session.
        domain: Email domain for the seeded accounts.

    Returns:
        List of (created user, generated plaintext password). Empty when every
        account already exists.
    """
    created: list[tuple[User, str]] = []
    for local_part, name, role in DEMO_USERS:
        email = f"{local_part}@{domain}"
        existing = await session.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            continue
        password = secrets.token_urlsafe(12)
        user = User(email=email, name=name, password_hash=hash_password(password), role=role.value)
        session.add(user)
        created.append((user, password))
    await session.commit()
    return created
