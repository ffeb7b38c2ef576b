"""Interfaces the services depend on.

The Postgres classes in this package implement them; tests substitute
in-memory versions.
"""

from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import UUID

from safezone.models.audit import AuthEvent
from safezone.models.danger_zone import DangerZone, SeverityLevel
from safezone.models.user import RefreshTokenRecord, User


class CredentialStore(Protocol):
    async def find_by_identifier(self, identifier: str) -> Optional[User]: ...

    async def find_by_id(self, user_id: UUID) -> Optional[User]: ...

    async def find_conflict(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]: ...

    async def insert_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User: ...

    async def update_user(self, user_id: UUID, **fields: Any) -> Optional[User]: ...

    async def record_failed_login(
        self, user_id: UUID, now: datetime, max_attempts: int, locked_until: datetime
    ) -> Optional[User]: ...

    async def delete_user(self, user_id: UUID) -> bool: ...


class SessionLedger(Protocol):
    async def insert_record(
        self, user_id: UUID, token_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshTokenRecord: ...

    async def find_active_record(
        self, token_id: str, token_hash: str
    ) -> Optional[RefreshTokenRecord]: ...

    async def revoke_record(self, record_id: UUID, user_id: Optional[UUID] = None) -> bool: ...

    async def revoke_token_id(self, user_id: UUID, token_id: str) -> bool: ...

    async def revoke_all_for_user(
        self, user_id: UUID, except_token_id: Optional[str] = None
    ) -> int: ...

    async def list_active_for_user(
        self, user_id: UUID, now: datetime
    ) -> list[RefreshTokenRecord]: ...

    async def rotate_record(
        self,
        record_id: UUID,
        user_id: UUID,
        token_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> Optional[RefreshTokenRecord]: ...


class AuditLogStore(Protocol):
    async def insert_event(self, event: AuthEvent) -> None: ...

    async def list_for_user(
        self, user_id: UUID, limit: int, offset: int
    ) -> tuple[list[AuthEvent], int]: ...


class DangerZoneStore(Protocol):
    async def insert_zone(
        self,
        user_id: UUID,
        latitude: float,
        longitude: float,
        title: str,
        description: Optional[str],
        severity_level: SeverityLevel,
    ) -> DangerZone: ...

    async def get_zone(self, zone_id: UUID) -> Optional[DangerZone]: ...

    async def list_zones(
        self,
        severity_level: Optional[SeverityLevel] = None,
        verified_only: bool = False,
        bounds: Optional[tuple[float, float, float, float]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[DangerZone]: ...

    async def update_zone(self, zone_id: UUID, **fields: Any) -> Optional[DangerZone]: ...

    async def delete_zone(self, zone_id: UUID) -> bool: ...
