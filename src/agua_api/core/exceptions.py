"""Access-control outcomes surfaced to callers.

Each error carries the HTTP status and the fixed public message returned to
the client.  Messages never include internal detail, and the credential
failure message is the same whether the email is unknown or the password is
wrong.
"""


class AccessControlError(Exception):
    """Base class for expected, user-facing access-control outcomes."""

    status_code: int = 400
    error_code: str = "access_denied"
    public_message: str = "Request denied"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class InvalidCredentials(AccessControlError):
    """Unknown email, inactive account, or wrong password (never distinguished)."""

    status_code = 401
    error_code = "invalid_credentials"
    public_message = "Invalid email or password"


class RateLimited(AccessControlError):
    """Too many failed attempts for this email in the trailing window."""

    status_code = 429
    error_code = "rate_limited"
    public_message = "Too many login attempts. Please try again later."


class AccountLocked(AccessControlError):
    """The account is inside its lockout period."""

    status_code = 423
    error_code = "account_locked"
    public_message = "Account temporarily locked due to multiple failed attempts"


class SessionExpired(AccessControlError):
    """The session outlived its absolute lifetime; the caller must log in again."""

    status_code = 401
    error_code = "session_expired"
    public_message = "Session expired, please log in again"


class SessionInvalid(AccessControlError):
    """Malformed, unknown, or revoked session."""

    status_code = 401
    error_code = "session_invalid"
    public_message = "Invalid session"


class AuthorizationDenied(AccessControlError):
    """The session's role does not hold the required capability."""

    status_code = 403
    error_code = "authorization_denied"
    public_message = "You do not have permission to perform this action"


class ServiceUnavailable(AccessControlError):
    """Storage or hashing failed; the operation was denied (fail closed)."""

    status_code = 503
    error_code = "service_unavailable"
    public_message = "Service temporarily unavailable, try again later"
