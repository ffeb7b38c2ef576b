"""Storage package exports."""

from safezone.storage.auth_logs import PostgresAuthLogStore
from safezone.storage.danger_zones import PostgresDangerZoneStore
from safezone.storage.protocols import (
    AuditLogStore,
    CredentialStore,
    DangerZoneStore,
    SessionLedger,
)
from safezone.storage.refresh_tokens import PostgresRefreshTokenStore
from safezone.storage.users import PostgresUserStore

__all__ = [
    "AuditLogStore",
    "CredentialStore",
    "DangerZoneStore",
    "PostgresAuthLogStore",
    "PostgresDangerZoneStore",
    "PostgresRefreshTokenStore",
    "PostgresUserStore",
    "SessionLedger",
]
