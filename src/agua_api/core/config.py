"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import enum
import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoleChangePolicy(enum.StrEnum):
    """How a user's role change affects sessions that are already open."""

    SNAPSHOT = "snapshot"
    REVOKE = "revoke"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="PostgreSQL async connection string",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Session tokens
    jwt_secret_key: str = Field(min_length=32, description="Secret key for signing session tokens (minimum 32 characters)")
    jwt_algorithm: str = Field(default="HS256", description="Session token signing algorithm")
    session_lifetime_hours: int = Field(
        default=8,
        description="Absolute session lifetime in hours (never extended)",
        gt=0,
    )
    session_check_interval_seconds: int = Field(
        default=60,
        description="How often clients should re-validate their session",
        gt=0,
    )
    role_change_policy: RoleChangePolicy = Field(
        default=RoleChangePolicy.SNAPSHOT,
        description="snapshot: open sessions keep their role until expiry; revoke: a role change ends them",
    )

    # Login throttling
    max_failed_attempts: int = Field(
        default=3,
        description="Failed attempts that trigger rate limiting and account lockout",
        gt=0,
    )
    rate_limit_window_minutes: int = Field(
        default=5,
        description="Trailing window over which failed login attempts are counted",
        gt=0,
    )
    lockout_minutes: int = Field(
        default=15,
        description="Account lockout duration after too many consecutive failures",
        gt=0,
    )
    login_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a login call; exceeding it fails closed",
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins",
    )

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    rate_limit_per_minute: int = Field(
        default=200,
        description="Maximum API requests per minute per IP address",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
