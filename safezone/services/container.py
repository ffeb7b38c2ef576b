"""Wiring of stores and services for one application instance."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import asyncpg

from safezone.config import Settings
from safezone.services.audit_service import AuditLog
from safezone.services.auth_service import AuthService
from safezone.services.danger_zone_service import DangerZoneService
from safezone.services.password_hasher import PasswordHasher
from safezone.services.token_service import TokenService
from safezone.services.user_service import UserService
from safezone.storage import (
    AuditLogStore,
    CredentialStore,
    DangerZoneStore,
    PostgresAuthLogStore,
    PostgresDangerZoneStore,
    PostgresRefreshTokenStore,
    PostgresUserStore,
    SessionLedger,
)


@dataclass
class Stores:
    users: CredentialStore
    sessions: SessionLedger
    auth_logs: AuditLogStore
    danger_zones: DangerZoneStore


def postgres_stores(pool: asyncpg.Pool) -> Stores:
    return Stores(
        users=PostgresUserStore(pool),
        sessions=PostgresRefreshTokenStore(pool),
        auth_logs=PostgresAuthLogStore(pool),
        danger_zones=PostgresDangerZoneStore(pool),
    )


@dataclass
class ServiceContainer:
    """Everything request handlers need, built once at startup."""

    settings: Settings
    stores: Stores
    tokens: TokenService
    audit: AuditLog
    auth: AuthService
    users: UserService
    danger_zones: DangerZoneService


def build_services(
    settings: Settings,
    stores: Stores,
    clock: Optional[Callable[[], datetime]] = None,
) -> ServiceContainer:
    """Build the service graph over ``stores``.

    ``clock`` overrides the lockout and session-expiry clock; token
    timestamps always use real time.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService.from_settings(settings)
    audit = AuditLog(stores.auth_logs)
    clock_kwargs = {"clock": clock} if clock is not None else {}

    return ServiceContainer(
        settings=settings,
        stores=stores,
        tokens=tokens,
        audit=audit,
        auth=AuthService(
            users=stores.users,
            sessions=stores.sessions,
            audit=audit,
            hasher=hasher,
            tokens=tokens,
            max_login_attempts=settings.max_login_attempts,
            lockout_minutes=settings.lockout_minutes,
            **clock_kwargs,
        ),
        users=UserService(stores.users, stores.sessions, audit, **clock_kwargs),
        danger_zones=DangerZoneService(stores.danger_zones),
    )
