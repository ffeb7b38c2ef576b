"""Shared asyncpg plumbing for the Postgres stores."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg
import structlog

from safezone.errors import StorageError

logger = structlog.get_logger(__name__)


def affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status such as ``"UPDATE 3"``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresRepository:
    """Base class for stores that talk to Postgres through a shared pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection, translating driver failures to StorageError."""
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(
                "storage_operation_failed",
                store=type(self).__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageError(detail=str(e)) from e
