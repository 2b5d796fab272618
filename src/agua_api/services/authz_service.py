"""Role-based authorization decisions.

The role → capability table is static and total.  Every decision validates
the presented session first; an expired or invalid session is denied
whatever role it carries.  Denials for otherwise valid sessions are audited.
"""

import enum
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.core.config import Settings
from agua_api.models.security_log import SecurityEventKind
from agua_api.models.user import UserRole
from agua_api.services.audit_service import record_event
from agua_api.services.session_service import SessionCheck, validate_session


class Capability(enum.StrEnum):
    """Atomic actions guarded by the authorization gate."""

    CREATE_CLIENT = "create-client"
    UPDATE_CLIENT = "update-client"
    DELETE_CLIENT = "delete-client"
    CREATE_READING = "create-reading"
    UPDATE_READING = "update-reading"
    DELETE_READING = "delete-reading"
    READ_ALL = "read-all"
    MANAGE_COMPANY = "manage-company"
    MANAGE_USERS = "manage-users"
    VIEW_AUDIT_LOG = "view-audit-log"


class AuthorizationDecision(enum.StrEnum):
    """Outcome of an authorization check."""

    ALLOWED = "allowed"
    DENIED = "denied"


ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.SUPER_ADMIN: frozenset(Capability),
    UserRole.ADMIN: frozenset(Capability),
    UserRole.OPERATOR: frozenset({Capability.CREATE_CLIENT, Capability.CREATE_READING, Capability.READ_ALL}),
    UserRole.VIEWER: frozenset({Capability.READ_ALL}),
}


def role_has_capability(role: str, capability: Capability) -> bool:
    """Static lookup; unknown roles hold nothing."""
    try:
        granted = ROLE_CAPABILITIES[UserRole(role)]
    except ValueError:
        return False
    return capability in granted


async def authorize(
    db: AsyncSession,
    token: str,
    capability: Capability,
    *,
    now: datetime,
    settings: Settings,
    ip_address: str | None = None,
) -> tuple[AuthorizationDecision, SessionCheck]:
    """Decide whether the session behind ``token`` may perform ``capability``.

    Args:
        db: The database session.
        token: The session token presented by the caller.
        capability: The capability the operation requires.
        now: Decision time.
        settings: Application settings.
        ip_address: Origin of the request.

    Returns:
        The decision and the session check it was based on, so callers can
        tell an expired session apart from a missing capability.
    """
    check = await validate_session(db, token, now=now, settings=settings, ip_address=ip_address)
    if not check.is_valid or check.session is None:
        return AuthorizationDecision.DENIED, check

    if role_has_capability(check.session.role, capability):
        return AuthorizationDecision.ALLOWED, check

    await record_event(
        db,
        SecurityEventKind.AUTHZ_DENIED,
        user_id=check.session.user_id,
        details={
            "capability": capability.value,
            "role": check.session.role,
            "session_id": str(check.session.id),
        },
        ip_address=ip_address,
        now=now,
    )
    return AuthorizationDecision.DENIED, check
