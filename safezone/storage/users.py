"""Postgres credential store (the ``users`` table)."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from safezone.errors import ConflictError
from safezone.models.user import User
from safezone.storage.base import PostgresRepository, affected_rows

logger = structlog.get_logger(__name__)

USER_COLUMNS = """
    id, username, email, password_hash, first_name, last_name, phone,
    is_active, email_verified, failed_login_attempts, locked_until,
    last_login, created_at, updated_at
"""

# Columns update_user may touch; anything else is a programming error.
UPDATABLE_COLUMNS = frozenset(
    {
        "password_hash",
        "first_name",
        "last_name",
        "phone",
        "is_active",
        "email_verified",
        "failed_login_attempts",
        "locked_until",
        "last_login",
    }
)


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        is_active=row["is_active"],
        email_verified=row["email_verified"],
        failed_login_attempts=row["failed_login_attempts"],
        locked_until=row["locked_until"],
        last_login=row["last_login"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresUserStore(PostgresRepository):
    """Credential store backed by asyncpg."""

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Get a user by exact (case-sensitive) username or email."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE username = $1 OR email = $1
                LIMIT 1
                """,
                identifier,
            )
        return _row_to_user(row) if row else None

    async def find_by_id(self, user_id: UUID) -> Optional[User]:
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )
        return _row_to_user(row) if row else None

    async def find_conflict(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]:
        """Return a user already holding ``username`` or ``email``, if any.

        A None argument never matches, so either column can be checked alone.
        """
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE username = $1 OR email = $2
                ORDER BY (username = $1) DESC
                LIMIT 1
                """,
                username,
                email,
            )
        return _row_to_user(row) if row else None

    async def insert_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User:
        """Insert a new active, unverified user.

        Raises:
            ConflictError: If the username or email was taken concurrently
        """
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            try:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users
                    (id, username, email, password_hash, first_name, last_name, phone,
                     is_active, email_verified, failed_login_attempts, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, TRUE, FALSE, 0, $8, $8)
                    RETURNING {USER_COLUMNS}
                    """,
                    uuid4(),
                    username,
                    email,
                    password_hash,
                    first_name,
                    last_name,
                    phone,
                    now,
                )
            except asyncpg.UniqueViolationError as e:
                field = "email" if "email" in (e.constraint_name or "") else "username"
                raise ConflictError(f"User with this {field} already exists", field=field) from e

        logger.info("user_inserted", user_id=str(row["id"]), username=username)
        return _row_to_user(row)

    async def update_user(self, user_id: UUID, **fields: Any) -> Optional[User]:
        """Update the given columns and return the fresh row (None if the user is gone)."""
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        assignments = []
        values: list[Any] = [user_id]
        for column, value in fields.items():
            values.append(value)
            assignments.append(f"{column} = ${len(values)}")
        values.append(datetime.now(timezone.utc))
        assignments.append(f"updated_at = ${len(values)}")

        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET {", ".join(assignments)}
                WHERE id = $1
                RETURNING {USER_COLUMNS}
                """,
                *values,
            )
        return _row_to_user(row) if row else None

    async def record_failed_login(
        self, user_id: UUID, now: datetime, max_attempts: int, locked_until: datetime
    ) -> Optional[User]:
        """Count one failed login and lock the account at the threshold.

        Runs as a single UPDATE so concurrent failures cannot lose increments.
        A lock that has already expired starts a fresh count.
        """
        async with self.connection() as conn:
            row = await conn.fetchrow(
                f"""
                WITH attempt AS (
                    SELECT CASE
                        WHEN locked_until IS NOT NULL AND locked_until <= $2 THEN 1
                        ELSE failed_login_attempts + 1
                    END AS attempts
                    FROM users
                    WHERE id = $1
                    FOR UPDATE
                )
                UPDATE users
                SET failed_login_attempts = attempt.attempts,
                    locked_until = CASE
                        WHEN attempt.attempts >= $3 THEN $4
                        WHEN users.locked_until IS NOT NULL AND users.locked_until <= $2 THEN NULL
                        ELSE users.locked_until
                    END,
                    updated_at = $2
                FROM attempt
                WHERE users.id = $1
                RETURNING {", ".join("users." + c.strip() for c in USER_COLUMNS.split(","))}
                """,
                user_id,
                now,
                max_attempts,
                locked_until,
            )
        return _row_to_user(row) if row else None

    async def delete_user(self, user_id: UUID) -> bool:
        """Delete a user; refresh tokens and danger zones cascade."""
        async with self.connection() as conn:
            status = await conn.execute("DELETE FROM users WHERE id = $1", user_id)
        return affected_rows(status) > 0
