"""Authentication audit events."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuthEventType(str, Enum):
    """Security-relevant action recorded in the audit log."""

    REGISTER = "register"
    LOGIN = "login"
    FAILED_LOGIN = "failed_login"
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password_change"
    ACCOUNT_DELETION = "account_deletion"
    TOKEN_REFRESH = "token_refresh"


class AuthEventMetadata(BaseModel):
    """Structured event detail.

    Known fields are typed; anything else goes into ``extra``.
    """

    model_config = ConfigDict(extra="forbid")

    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    failed_attempts: Optional[int] = None
    locked_until: Optional[datetime] = None
    token_id: Optional[str] = None
    reason: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)


class AuthEvent(BaseModel):
    """An append-only audit record.

    ``user_id`` is None when the actor could not be identified (unknown login
    identifier) or no longer exists (account deletion).
    """

    id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    event_type: AuthEventType
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    error_message: Optional[str] = None
    metadata: AuthEventMetadata = Field(default_factory=AuthEventMetadata)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RequestContext:
    """Client details attached to audit events."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
