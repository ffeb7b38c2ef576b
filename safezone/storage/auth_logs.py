"""Postgres audit log store (the ``auth_logs`` table)."""

import json
from datetime import datetime, timezone
from uuid import UUID, uuid4

from safezone.models.audit import AuthEvent, AuthEventMetadata
from safezone.storage.base import PostgresRepository


class PostgresAuthLogStore(PostgresRepository):
    """Append-only audit log. Rows are never updated or deleted here."""

    async def insert_event(self, event: AuthEvent) -> None:
        metadata = event.metadata.model_dump(mode="json", exclude_none=True)
        if not metadata.get("extra"):
            metadata.pop("extra", None)

        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO auth_logs
                (id, user_id, event_type, success, ip_address, user_agent,
                 error_message, metadata, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                event.id or uuid4(),
                event.user_id,
                event.event_type.value,
                event.success,
                event.ip_address,
                event.user_agent,
                event.error_message,
                json.dumps(metadata) if metadata else None,
                event.created_at or datetime.now(timezone.utc),
            )

    async def list_for_user(
        self, user_id: UUID, limit: int, offset: int
    ) -> tuple[list[AuthEvent], int]:
        """A page of a user's events, newest first, and the total count."""
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, event_type, success, ip_address, user_agent,
                       error_message, metadata, created_at
                FROM auth_logs
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                user_id,
                limit,
                offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM auth_logs WHERE user_id = $1",
                user_id,
            )

        events = []
        for row in rows:
            raw = row["metadata"]
            if isinstance(raw, str):
                raw = json.loads(raw)
            events.append(
                AuthEvent(
                    id=row["id"],
                    user_id=row["user_id"],
                    event_type=row["event_type"],
                    success=row["success"],
                    ip_address=row["ip_address"],
                    user_agent=row["user_agent"],
                    error_message=row["error_message"],
                    metadata=AuthEventMetadata.model_validate(raw or {}),
                    created_at=row["created_at"],
                )
            )
        return events, total or 0
