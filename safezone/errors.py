"""Domain error taxonomy.

Services raise these; the API layer maps them to responses in one exception
handler. ``message`` is always safe to show a client. Server-side failures
(``HashingError``, ``StorageError``) keep their internal detail in ``detail``
for operational logs and expose only a generic message.
"""

from datetime import datetime
from typing import Optional


class SafezoneError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ConflictError(SafezoneError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidCredentialsError(SafezoneError):
    """Unknown identifier or wrong password; the two are never distinguished."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class AccountLockedError(SafezoneError):
    status_code = 423
    code = "account_locked"
    default_message = "Account is temporarily locked due to too many failed attempts"

    def __init__(self, message: Optional[str] = None, *, locked_until: Optional[datetime] = None):
        super().__init__(message)
        self.locked_until = locked_until


class AccountInactiveError(SafezoneError):
    status_code = 403
    code = "account_inactive"
    default_message = "Account is deactivated"


class InvalidTokenError(SafezoneError):
    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token"


class ExpiredTokenError(SafezoneError):
    status_code = 401
    code = "token_expired"
    default_message = "Refresh token expired"


class IncorrectPasswordError(SafezoneError):
    """Password re-verification failed for an already authenticated user."""

    status_code = 400
    code = "incorrect_password"
    default_message = "Password is incorrect"


class NotFoundError(SafezoneError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class PermissionDeniedError(SafezoneError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action"


class HashingError(SafezoneError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"


class StorageError(SafezoneError):
    status_code = 503
    code = "storage_unavailable"
    default_message = "Service temporarily unavailable"
