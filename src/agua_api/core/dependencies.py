"""FastAPI dependency injection for database sessions, sessions, and capabilities.

Provides get_async_session, get_current_session, get_current_user, and the
require_capability factory that guards every privileged route.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.api.middleware import get_client_ip
from agua_api.core.config import Settings, get_settings
from agua_api.core.database import get_session_factory
from agua_api.core.exceptions import AuthorizationDenied, SessionExpired, SessionInvalid
from agua_api.models.base import utcnow
from agua_api.models.session import AuthSession
from agua_api.models.user import User
from agua_api.services.authz_service import AuthorizationDecision, Capability, authorize
from agua_api.services.session_service import SessionCheck, SessionStatus, validate_session

bearer_scheme = HTTPBearer(auto_error=False)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_request_ip(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Resolve the client IP, honouring the configured proxy headers."""
    return get_client_ip(request, settings.trusted_proxy_header_list)


def _raise_for_check(check: SessionCheck) -> None:
    if check.status is SessionStatus.EXPIRED:
        raise SessionExpired
    if not check.is_valid or check.session is None:
        raise SessionInvalid


async def get_current_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    ip_address: Annotated[str, Depends(get_request_ip)],
) -> AuthSession:
    """Validate the bearer session token and return its session row.

    Raises:
        SessionInvalid: If no token was sent or it does not name a live session.
        SessionExpired: If the session outlived its lifetime.
    """
    if credentials is None:
        raise SessionInvalid
    check = await validate_session(
        session, credentials.credentials, now=utcnow(), settings=settings, ip_address=ip_address
    )
    _raise_for_check(check)
    assert check.session is not None
    return check.session


async def get_current_user(
    current_session: Annotated[AuthSession, Depends(get_current_session)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Return the user owning the current session.

    Raises:
        SessionInvalid: If the user no longer exists or was deactivated.
    """
    user = await session.get(User, current_session.user_id)
    if user is None or not user.is_active:
        raise SessionInvalid
    return user


def require_capability(capability: Capability) -> Callable[..., Any]:
    """Factory that creates a dependency requiring a capability.

    The capability is checked against the role the session was issued with.

    Args:
        capability: The capability the route requires.

    Returns:
        A FastAPI dependency returning the authorized session row.
    """

    async def capability_checker(
        credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
        session: Annotated[AsyncSession, Depends(get_async_session)],
        settings: Annotated[Settings, Depends(get_settings)],
        ip_address: Annotated[str, Depends(get_request_ip)],
    ) -> AuthSession:
        if credentials is None:
            raise SessionInvalid
        decision, check = await authorize(
            session,
            credentials.credentials,
            capability,
            now=utcnow(),
            settings=settings,
            ip_address=ip_address,
        )
        _raise_for_check(check)
        if decision is not AuthorizationDecision.ALLOWED:
            raise AuthorizationDenied
        assert check.session is not None
        return check.session

    return capability_checker
