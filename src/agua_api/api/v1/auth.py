"""Authentication API endpoints.

POST /auth/login, POST /auth/logout, GET /auth/session, GET /auth/me,
GET /health, GET /info.
"""

import subprocess
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api import __version__
from agua_api.core.config import Settings, get_settings
from agua_api.core.dependencies import get_async_session, get_current_session, get_current_user, get_request_ip
from agua_api.models.base import utcnow
from agua_api.models.session import AuthSession, SessionEndReason
from agua_api.models.user import User
from agua_api.schemas.auth import LoginRequest, SessionDescriptor, SessionStatusResponse, UserResponse
from agua_api.services import auth_service, session_service


def _get_git_commit() -> str:
    """Resolve the current git short SHA once at import time."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S603, S607
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).resolve().parent,
        )
        return result.stdout.strip() if result.returncode == 0 else "unknown"
    except (OSError, subprocess.SubprocessError):
        return "unknown"


_GIT_COMMIT = _get_git_commit()

router = APIRouter(tags=["auth"])


@router.get("/health", status_code=200)
async def health_check() -> dict:
    """Health check endpoint (no authentication required)."""
    return {"status": "healthy"}


@router.get("/info", status_code=200)
async def info(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    """Return application version, git commit, and environment."""
    return {
        "version": __version__,
        "git_commit": _GIT_COMMIT,
        "environment": settings.environment,
    }


@router.post("/auth/login", response_model=SessionDescriptor)
async def login(
    body: LoginRequest,
    request: Request,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    ip_address: Annotated[str, Depends(get_request_ip)],
) -> SessionDescriptor:
    """Verify credentials and open a session.

    Failures map to 401 (bad credentials), 429 (rate limited), 423 (locked)
    or 503 (fail closed) through the application exception handler.
    """
    return await auth_service.login(
        session,
        body.email,
        body.password,
        settings=settings,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_session: Annotated[AuthSession, Depends(get_current_session)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    ip_address: Annotated[str, Depends(get_request_ip)],
) -> Response:
    """End the current session."""
    await session_service.revoke_session(
        session, current_session, now=utcnow(), reason=SessionEndReason.LOGOUT, ip_address=ip_address
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/auth/session", response_model=SessionStatusResponse)
async def session_status(
    current_session: Annotated[AuthSession, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionStatusResponse:
    """Report whether the current session is still valid and how long it has left."""
    remaining = (current_session.expires_at - utcnow()).total_seconds()
    return SessionStatusResponse(
        status=session_service.SessionStatus.VALID.value,
        user_id=current_session.user_id,
        role=current_session.role,
        issued_at=current_session.issued_at,
        expires_at=current_session.expires_at,
        seconds_remaining=max(0, int(remaining)),
        check_interval_seconds=settings.session_check_interval_seconds,
    )


@router.get("/auth/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get the currently authenticated user's profile."""
    return current_user
