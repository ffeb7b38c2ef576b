"""User and refresh token records."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserProfile(BaseModel):
    """Public view of a user, safe to return to clients."""

    id: UUID
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email_verified: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class User(BaseModel):
    """A registered user as stored in the credential store."""

    id: UUID
    username: str
    email: str
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    email_verified: bool = False
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def is_locked(self, now: datetime) -> bool:
        """Whether a lockout is in force at ``now``.

        Expired locks are not cleared here; they simply stop counting.
        """
        return self.locked_until is not None and self.locked_until > now

    def profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            username=self.username,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            email_verified=self.email_verified,
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_login=self.last_login,
        )


class RefreshTokenRecord(BaseModel):
    """An issued refresh token, stored by digest only."""

    id: UUID
    user_id: UUID
    token_id: str
    token_hash: str
    expires_at: datetime
    is_revoked: bool = False
    created_at: datetime
    updated_at: datetime


class SessionSummary(BaseModel):
    """Active session as shown to its owner."""

    id: UUID
    token_id: str
    created_at: datetime
    expires_at: datetime
