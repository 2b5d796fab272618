"""User administration endpoints (capability manage-users).

GET /users, POST /users, PATCH /users/{user_id}, POST /users/{user_id}/unlock.
"""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.core.config import Settings, get_settings
from agua_api.core.dependencies import get_async_session, require_capability
from agua_api.models.session import AuthSession
from agua_api.models.user import User
from agua_api.schemas.auth import UserCreateRequest, UserResponse, UserUpdateRequest
from agua_api.schemas.common import PaginationMeta, PaginationParams
from agua_api.services import auth_service
from agua_api.services.authz_service import Capability

users_router = APIRouter(prefix="/users", tags=["users"])

_manage_users = require_capability(Capability.MANAGE_USERS)


async def _get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await auth_service.get_user(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@users_router.get("", response_model=dict)
async def list_users(
    _current_session: Annotated[AuthSession, Depends(_manage_users)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
) -> dict:
    """List all users."""
    users, total = await auth_service.list_users(session, pagination.page, pagination.page_size)
    return {
        "items": [UserResponse.model_validate(u) for u in users],
        "pagination": PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    }


@users_router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    request: UserCreateRequest,
    _current_session: Annotated[AuthSession, Depends(_manage_users)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Create a new user."""
    try:
        return await auth_service.create_user(session, request)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@users_router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    request: UserUpdateRequest,
    _current_session: Annotated[AuthSession, Depends(_manage_users)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Change a user's name, role, or active flag.

    Deactivating a user ends their open sessions; a role change does so only
    under the ``revoke`` role-change policy.
    """
    user = await _get_user_or_404(session, user_id)
    return await auth_service.update_user(session, user, request.model_dump(exclude_unset=True), settings=settings)


@users_router.post("/{user_id}/unlock", response_model=UserResponse)
async def unlock_user(
    user_id: uuid.UUID,
    _current_session: Annotated[AuthSession, Depends(_manage_users)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Clear a user's failure counter and lockout."""
    user = await _get_user_or_404(session, user_id)
    return await auth_service.unlock_user(session, user)
