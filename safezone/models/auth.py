"""Auth request and response models with validation."""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from safezone.models.audit import AuthEventType
from safezone.models.user import SessionSummary, UserProfile

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_LENGTH = 72


def check_password_strength(password: str) -> list[str]:
    """Score a password and return feedback for the checks it misses.

    A password is strong when it passes at least four of: length >= 8,
    a lowercase letter, an uppercase letter, a digit, a special character.

    Returns:
        Empty list for a strong password, otherwise human-readable feedback
    """
    checks = {
        "Password must be at least 8 characters long": len(password) >= 8,
        "Password must contain at least one lowercase letter": bool(re.search(r"[a-z]", password)),
        "Password must contain at least one uppercase letter": bool(re.search(r"[A-Z]", password)),
        "Password must contain at least one number": bool(re.search(r"\d", password)),
        "Password must contain at least one special character": bool(SPECIAL_CHARACTERS.search(password)),
    }
    if sum(checks.values()) >= 4:
        return []
    return [message for message, passed in checks.items() if not passed]


def _strong_password(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    if len(v.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LENGTH} bytes")
    feedback = check_password_strength(v)
    if feedback:
        raise ValueError("; ".join(feedback))
    return v


class RegisterRequest(BaseModel):
    """New account registration.

    Attributes:
        username: Unique handle (3-30 chars, letters, digits, underscore)
        email: Unique email address
        password: Password meeting the strength rule (8-72 chars)
        first_name: Optional given name
        last_name: Optional family name
        phone: Optional phone number
    """

    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=PASSWORD_MAX_LENGTH)
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("username")
    @classmethod
    def username_valid_chars(cls, v: str) -> str:
        """Ensure username contains only alphanumeric characters or underscores."""
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username must contain only alphanumeric characters or underscores"
            )
        return v

    @field_validator("password")
    @classmethod
    def password_strong(cls, v: str) -> str:
        return _strong_password(v)


class LoginRequest(BaseModel):
    """Login credentials.

    Attributes:
        identifier: Username or email, matched exactly
        password: Account password
    """

    identifier: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RefreshRequest(BaseModel):
    """Request to exchange a refresh token for a new token pair."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Logout body; the refresh token is optional."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Password change for the authenticated user.

    Attributes:
        current_password: Re-verified before anything changes
        new_password: Replacement meeting the strength rule
    """

    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(..., min_length=8, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("new_password")
    @classmethod
    def password_strong(cls, v: str) -> str:
        return _strong_password(v)


class DeleteAccountRequest(BaseModel):
    """Account deletion; requires the current password."""

    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class UpdateProfileRequest(BaseModel):
    """Profile update. Only provided fields change; an empty phone clears it."""

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)


class RevokeSessionsRequest(BaseModel):
    """Revoke every session, optionally keeping the caller's own."""

    current_token_id: Optional[str] = None


class AuthResponse(BaseModel):
    """Successful authentication with a fresh token pair.

    Attributes:
        user: Public profile of the authenticated user
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived, single-use JWT for obtaining a new pair
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
    """

    user: UserProfile
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")


class MessageResponse(BaseModel):
    message: str


class Availability(BaseModel):
    """None means the field was not asked about."""

    username: Optional[bool] = None
    email: Optional[bool] = None


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]


class AuthLogEntry(BaseModel):
    """Audit event as shown to the account owner."""

    event_type: AuthEventType
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthLogPage(BaseModel):
    logs: list[AuthLogEntry]
    page: int
    limit: int
    total: int
