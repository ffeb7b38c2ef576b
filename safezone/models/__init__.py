"""Models package exports."""

from safezone.models.audit import AuthEvent, AuthEventMetadata, AuthEventType, RequestContext
from safezone.models.auth import AuthResponse
from safezone.models.danger_zone import DangerZone, SeverityLevel
from safezone.models.user import RefreshTokenRecord, SessionSummary, User, UserProfile

__all__ = [
    "AuthEvent",
    "AuthEventMetadata",
    "AuthEventType",
    "AuthResponse",
    "DangerZone",
    "RefreshTokenRecord",
    "RequestContext",
    "SessionSummary",
    "SeverityLevel",
    "User",
    "UserProfile",
]
