"""Best-effort writer for the authentication audit log."""

from typing import Optional
from uuid import UUID

import structlog

from safezone.models.audit import AuthEvent, AuthEventMetadata, AuthEventType, RequestContext
from safezone.storage.protocols import AuditLogStore

logger = structlog.get_logger(__name__)


class AuditLog:
    """Appends audit events without ever failing the caller.

    A failed write is reported to the operational log and otherwise ignored,
    so it can never mask the outcome of the operation being audited.
    """

    def __init__(self, store: AuditLogStore):
        self.store = store

    async def append(self, event: AuthEvent) -> None:
        try:
            await self.store.insert_event(event)
        except Exception as e:
            logger.error(
                "auth_event_write_failed",
                event_type=event.event_type.value,
                user_id=str(event.user_id) if event.user_id else None,
                success=event.success,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def record(
        self,
        event_type: AuthEventType,
        success: bool,
        *,
        user_id: Optional[UUID] = None,
        context: Optional[RequestContext] = None,
        error_message: Optional[str] = None,
        metadata: Optional[AuthEventMetadata] = None,
    ) -> None:
        """Build an event from its parts and append it."""
        context = context or RequestContext()
        await self.append(
            AuthEvent(
                user_id=user_id,
                event_type=event_type,
                success=success,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                error_message=error_message,
                metadata=metadata or AuthEventMetadata(),
            )
        )

    async def list_for_user(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[AuthEvent], int]:
        return await self.store.list_for_user(user_id, limit, offset)
