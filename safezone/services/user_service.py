"""Account self-service: profile, sessions, audit history, availability."""

from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from safezone.errors import NotFoundError
from safezone.models.auth import AuthLogEntry, AuthLogPage, Availability
from safezone.models.user import SessionSummary, User, UserProfile
from safezone.services.audit_service import AuditLog
from safezone.storage.protocols import CredentialStore, SessionLedger

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    """Operations an authenticated user performs on their own account."""

    def __init__(
        self,
        users: CredentialStore,
        sessions: SessionLedger,
        audit: AuditLog,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.users = users
        self.sessions = sessions
        self.audit = audit
        self.clock = clock

    async def get_user(self, user_id: UUID) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_profile(self, user_id: UUID) -> UserProfile:
        return (await self.get_user(user_id)).profile()

    async def update_profile(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> UserProfile:
        """Update only the fields that were provided.

        An empty ``phone`` clears the stored number.
        """
        fields = {}
        if first_name is not None:
            fields["first_name"] = first_name.strip() or None
        if last_name is not None:
            fields["last_name"] = last_name.strip() or None
        if phone is not None:
            fields["phone"] = phone.strip() or None

        if not fields:
            return await self.get_profile(user_id)

        user = await self.users.update_user(user_id, **fields)
        if user is None:
            raise NotFoundError("User not found")
        logger.info("profile_updated", user_id=str(user_id), fields=sorted(fields))
        return user.profile()

    async def list_sessions(self, user_id: UUID) -> list[SessionSummary]:
        """Unrevoked, unexpired refresh tokens of the user, newest first."""
        records = await self.sessions.list_active_for_user(user_id, self.clock())
        return [
            SessionSummary(
                id=record.id,
                token_id=record.token_id,
                created_at=record.created_at,
                expires_at=record.expires_at,
            )
            for record in records
        ]

    async def revoke_session(self, user_id: UUID, session_id: UUID) -> None:
        """Revoke one of the user's own sessions.

        Raises:
            NotFoundError: No such session for this user
        """
        revoked = await self.sessions.revoke_record(session_id, user_id=user_id)
        if not revoked:
            raise NotFoundError("Session not found")
        logger.info("session_revoked", user_id=str(user_id), session_id=str(session_id))

    async def revoke_all_sessions(
        self, user_id: UUID, except_token_id: Optional[str] = None
    ) -> int:
        count = await self.sessions.revoke_all_for_user(user_id, except_token_id=except_token_id)
        logger.info(
            "sessions_revoked",
            user_id=str(user_id),
            count=count,
            kept_current=except_token_id is not None,
        )
        return count

    async def list_auth_events(self, user_id: UUID, page: int = 1, limit: int = 20) -> AuthLogPage:
        offset = (page - 1) * limit
        events, total = await self.audit.list_for_user(user_id, limit=limit, offset=offset)
        return AuthLogPage(
            logs=[
                AuthLogEntry(
                    event_type=event.event_type,
                    success=event.success,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent,
                    error_message=event.error_message,
                    created_at=event.created_at,
                )
                for event in events
            ],
            page=page,
            limit=limit,
            total=total,
        )

    async def check_availability(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Availability:
        """Report whether a username and/or email is still free."""
        result = Availability()
        if username:
            result.username = await self.users.find_conflict(username, None) is None
        if email:
            result.email = await self.users.find_conflict(None, email) is None
        return result
