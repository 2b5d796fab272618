"""Security audit trail response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from agua_api.schemas.common import PaginationMeta


class SecurityEventResponse(BaseModel):
    """One recorded security event."""

    id: UUID
    event_type: str
    user_id: UUID | None = None
    details: dict | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class SecurityEventListResponse(BaseModel):
    """Paginated security events."""

    items: list[SecurityEventResponse]
    pagination: PaginationMeta
