"""Security audit trail endpoint (capability view-audit-log)."""

import math
import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agua_api.core.dependencies import get_async_session, require_capability
from agua_api.models.security_log import SecurityEventKind
from agua_api.models.session import AuthSession
from agua_api.schemas.common import PaginationMeta, PaginationParams
from agua_api.schemas.security_log import SecurityEventListResponse, SecurityEventResponse
from agua_api.services.audit_service import query_security_events
from agua_api.services.authz_service import Capability

security_events_router = APIRouter(prefix="/security-events", tags=["security-events"])


@security_events_router.get("", response_model=SecurityEventListResponse)
async def list_security_events(
    _current_session: Annotated[AuthSession, Depends(require_capability(Capability.VIEW_AUDIT_LOG))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    user_id: Annotated[uuid.UUID | None, Query()] = None,
    event_type: Annotated[SecurityEventKind | None, Query()] = None,
    start_time: Annotated[datetime | None, Query()] = None,
    end_time: Annotated[datetime | None, Query()] = None,
) -> SecurityEventListResponse:
    """List recorded security events, newest first."""
    events, total = await query_security_events(
        session,
        user_id=user_id,
        event_type=event_type,
        start_time=start_time,
        end_time=end_time,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return SecurityEventListResponse(
        items=[SecurityEventResponse.model_validate(e) for e in events],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )
