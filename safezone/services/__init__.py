"""Service layer exports."""

from safezone.services.audit_service import AuditLog
from safezone.services.auth_service import AuthService
from safezone.services.container import ServiceContainer, Stores, build_services, postgres_stores
from safezone.services.danger_zone_service import DangerZoneService, haversine_km
from safezone.services.password_hasher import PasswordHasher
from safezone.services.token_service import TokenService
from safezone.services.user_service import UserService

__all__ = [
    "AuditLog",
    "AuthService",
    "DangerZoneService",
    "PasswordHasher",
    "ServiceContainer",
    "Stores",
    "TokenService",
    "UserService",
    "build_services",
    "haversine_km",
    "postgres_stores",
]
