"""Authentication, session, and user Pydantic v2 schemas.

Defines request/response schemas for login, session status, and user
management.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

_ROLE_PATTERN = "^(super_admin|admin|operator|viewer)$"


class LoginRequest(BaseModel):
    """Login request with email and password.

    Email is not validated as an address here: a malformed email must fail
    the same way as an unknown one.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


class SessionDescriptor(BaseModel):
    """What a client holds for the lifetime of its session."""

    user_id: UUID
    email: str
    name: str
    role: str
    expires_at: datetime
    access_token: str
    token_type: str = "bearer"
    check_interval_seconds: int = Field(description="How often the client should re-validate the session")


class SessionStatusResponse(BaseModel):
    """Result of a periodic session liveness check."""

    status: str
    user_id: UUID
    role: str
    issued_at: datetime
    expires_at: datetime
    seconds_remaining: int
    check_interval_seconds: int


class UserCreateRequest(BaseModel):
    """Request to create a new user."""

    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=1024)
    role: str = Field(pattern=_ROLE_PATTERN)


class UserUpdateRequest(BaseModel):
    """Request to partially update an existing user (all fields optional)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: str | None = Field(default=None, pattern=_ROLE_PATTERN)
    is_active: bool | None = None


class UserResponse(BaseModel):
    """User information response."""

    id: UUID
    email: str
    name: str
    role: str
    is_active: bool
    failed_login_attempts: int
    locked_until: datetime | None = None
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}
