"""Security audit logging service.

Records immutable security events and queries them for the admin audit
view.  Events raised during a login or authorization decision are written in
the same transaction as the decision itself (``commit=False``), so they are
durable before the caller sees the outcome.
"""

import uuid
from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.models.base import utcnow
from agua_api.models.security_log import SecurityEventKind, SecurityLog

_WARNING_KINDS: frozenset[SecurityEventKind] = frozenset(
    {
        SecurityEventKind.LOGIN_FAILURE,
        SecurityEventKind.RATE_LIMITED,
        SecurityEventKind.ACCOUNT_LOCKED,
        SecurityEventKind.AUTHZ_DENIED,
    }
)


async def record_event(
    session: AsyncSession,
    kind: SecurityEventKind,
    *,
    user_id: uuid.UUID | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> SecurityLog:
    """Create an immutable security log record.

    Args:
        session: The database session.
        kind: The event kind.
        user_id: The user the event concerns, if known.
        details: JSON-serializable context (email, capability, durations...).
        ip_address: Origin of the request.
        user_agent: Client user agent.
        now: Event time; defaults to the current UTC time.
        commit: Commit immediately. Pass False to join the caller's transaction.

    Returns:
        The created SecurityLog record.
    """
    event = SecurityLog(
        event_type=kind.value,
        user_id=user_id,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent,
        timestamp=now or utcnow(),
    )
    session.add(event)

    level = "WARNING" if kind in _WARNING_KINDS else "INFO"
    logger.bind(security_event=kind.value).log(
        level,
        "{} user={} ip={} details={}",
        kind.value,
        user_id,
        ip_address,
        details or {},
    )

    if commit:
        await session.commit()
    return event


async def query_security_events(
    session: AsyncSession,
    *,
    user_id: uuid.UUID | None = None,
    event_type: SecurityEventKind | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[SecurityLog], int]:
    """Query security events with optional filters, newest first.

    Args:
        session: The database session.
        user_id: Filter by user ID.
        event_type: Filter by event kind.
        start_time: Filter records at or after this timestamp.
        end_time: Filter records at or before this timestamp.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (security log records, total count).
    """
    query = select(SecurityLog)
    count_query = select(func.count(SecurityLog.id))

    if user_id is not None:
        query = query.where(SecurityLog.user_id == user_id)
        count_query = count_query.where(SecurityLog.user_id == user_id)
    if event_type is not None:
        query = query.where(SecurityLog.event_type == event_type.value)
        count_query = count_query.where(SecurityLog.event_type == event_type.value)
    if start_time is not None:
        query = query.where(SecurityLog.timestamp >= start_time)
        count_query = count_query.where(SecurityLog.timestamp >= start_time)
    if end_time is not None:
        query = query.where(SecurityLog.timestamp <= end_time)
        count_query = count_query.where(SecurityLog.timestamp <= end_time)

    total = (await session.execute(count_query)).scalar_one()

    offset = (page - 1) * page_size
    query = query.order_by(SecurityLog.timestamp.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    events = list(result.scalars().all())

    return events, total
