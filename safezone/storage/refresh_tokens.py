"""Postgres session ledger (the ``refresh_tokens`` table)."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from safezone.models.user import RefreshTokenRecord
from safezone.storage.base import PostgresRepository, affected_rows

logger = structlog.get_logger(__name__)

RECORD_COLUMNS = "id, user_id, token_id, token_hash, expires_at, is_revoked, created_at, updated_at"

INSERT_RECORD_SQL = f"""
    INSERT INTO refresh_tokens
    (id, user_id, token_id, token_hash, expires_at, is_revoked, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, FALSE, $6, $6)
    RETURNING {RECORD_COLUMNS}
"""


def _row_to_record(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row["id"],
        user_id=row["user_id"],
        token_id=row["token_id"],
        token_hash=row["token_hash"],
        expires_at=row["expires_at"],
        is_revoked=row["is_revoked"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresRefreshTokenStore(PostgresRepository):
    """Session ledger backed by asyncpg. Tokens are only ever stored by digest."""

    async def insert_record(
        self, user_id: UUID, token_id: str, token_hash: str, expires_at: datetime
    ) -> RefreshTokenRecord:
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            row = await conn.fetchrow(
                INSERT_RECORD_SQL, uuid4(), user_id, token_id, token_hash, expires_at, now
            )

        logger.info(
            "refresh_token_stored",
            user_id=str(user_id),
            token_id=token_id,
            expires_at=expires_at.isoformat(),
        )
        return _row_to_record(row)

    async def find_active_record(
        self, token_id: str, token_hash: str
    ) -> Optional[RefreshTokenRecord]:
        """Find an unrevoked record matching both the token id and the digest."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {RECORD_COLUMNS}
                FROM refresh_tokens
                WHERE token_id = $1 AND token_hash = $2 AND is_revoked = FALSE
                """,
                token_id,
                token_hash,
            )
        return _row_to_record(row) if row else None

    async def revoke_record(self, record_id: UUID, user_id: Optional[UUID] = None) -> bool:
        """Revoke one record, optionally scoped to its owner."""
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            if user_id is None:
                status = await conn.execute(
                    """
                    UPDATE refresh_tokens
                    SET is_revoked = TRUE, updated_at = $2
                    WHERE id = $1 AND is_revoked = FALSE
                    """,
                    record_id,
                    now,
                )
            else:
                status = await conn.execute(
                    """
                    UPDATE refresh_tokens
                    SET is_revoked = TRUE, updated_at = $3
                    WHERE id = $1 AND user_id = $2 AND is_revoked = FALSE
                    """,
                    record_id,
                    user_id,
                    now,
                )
        return affected_rows(status) > 0

    async def revoke_token_id(self, user_id: UUID, token_id: str) -> bool:
        """Revoke the record carrying ``token_id`` if it belongs to ``user_id``."""
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            status = await conn.execute(
                """
                UPDATE refresh_tokens
                SET is_revoked = TRUE, updated_at = $3
                WHERE token_id = $1 AND user_id = $2 AND is_revoked = FALSE
                """,
                token_id,
                user_id,
                now,
            )
        return affected_rows(status) > 0

    async def revoke_all_for_user(
        self, user_id: UUID, except_token_id: Optional[str] = None
    ) -> int:
        """Revoke all of a user's records, optionally sparing one token id.

        Returns:
            Number of records revoked
        """
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            if except_token_id is None:
                status = await conn.execute(
                    """
                    UPDATE refresh_tokens
                    SET is_revoked = TRUE, updated_at = $2
                    WHERE user_id = $1 AND is_revoked = FALSE
                    """,
                    user_id,
                    now,
                )
            else:
                status = await conn.execute(
                    """
                    UPDATE refresh_tokens
                    SET is_revoked = TRUE, updated_at = $2
                    WHERE user_id = $1 AND is_revoked = FALSE AND token_id <> $3
                    """,
                    user_id,
                    now,
                    except_token_id,
                )

        revoked = affected_rows(status)
        logger.info("refresh_tokens_revoked", user_id=str(user_id), count=revoked)
        return revoked

    async def list_active_for_user(
        self, user_id: UUID, now: datetime
    ) -> list[RefreshTokenRecord]:
        """Unrevoked, unexpired records, newest first."""
        async with self.connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {RECORD_COLUMNS}
                FROM refresh_tokens
                WHERE user_id = $1 AND is_revoked = FALSE AND expires_at > $2
                ORDER BY created_at DESC
                """,
                user_id,
                now,
            )
        return [_row_to_record(row) for row in rows]

    async def rotate_record(
        self,
        record_id: UUID,
        user_id: UUID,
        token_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> Optional[RefreshTokenRecord]:
        """Revoke ``record_id`` and store its replacement in one transaction.

        Returns:
            The new record, or None if the old one was already revoked
            (a concurrent refresh won the race); nothing is written then.
        """
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            async with conn.transaction():
                status = await conn.execute(
                    """
                    UPDATE refresh_tokens
                    SET is_revoked = TRUE, updated_at = $2
                    WHERE id = $1 AND is_revoked = FALSE
                    """,
                    record_id,
                    now,
                )
                if affected_rows(status) == 0:
                    return None
                row = await conn.fetchrow(
                    INSERT_RECORD_SQL, uuid4(), user_id, token_id, token_hash, expires_at, now
                )

        logger.info(
            "refresh_token_rotated",
            user_id=str(user_id),
            old_record_id=str(record_id),
            token_id=token_id,
        )
        return _row_to_record(row)
