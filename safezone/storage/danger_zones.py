"""Postgres store for danger zone reports."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from safezone.models.danger_zone import DangerZone, Reporter, SeverityLevel
from safezone.storage.base import PostgresRepository, affected_rows

ZONE_SELECT = """
    SELECT dz.id, dz.user_id, dz.latitude, dz.longitude, dz.title, dz.description,
           dz.severity_level, dz.is_verified, dz.verification_count,
           dz.created_at, dz.updated_at,
           u.username, u.first_name, u.last_name
    FROM danger_zones dz
    JOIN users u ON u.id = dz.user_id
"""

UPDATABLE_COLUMNS = frozenset({"title", "description", "severity_level"})


def _row_to_zone(row) -> DangerZone:
    name = f"{row['first_name'] or ''} {row['last_name'] or ''}".strip()
    return DangerZone(
        id=row["id"],
        user_id=row["user_id"],
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        title=row["title"],
        description=row["description"],
        severity_level=row["severity_level"],
        is_verified=row["is_verified"],
        verification_count=row["verification_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        reporter=Reporter(id=row["user_id"], username=row["username"], name=name),
    )


class PostgresDangerZoneStore(PostgresRepository):
    """Danger zones joined with their reporter."""

    async def insert_zone(
        self,
        user_id: UUID,
        latitude: float,
        longitude: float,
        title: str,
        description: Optional[str],
        severity_level: SeverityLevel,
    ) -> DangerZone:
        zone_id = uuid4()
        now = datetime.now(timezone.utc)
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO danger_zones
                (id, user_id, latitude, longitude, title, description, severity_level,
                 created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $8)
                """,
                zone_id,
                user_id,
                latitude,
                longitude,
                title,
                description,
                severity_level.value,
                now,
            )
            row = await conn.fetchrow(f"{ZONE_SELECT} WHERE dz.id = $1", zone_id)
        return _row_to_zone(row)

    async def get_zone(self, zone_id: UUID) -> Optional[DangerZone]:
        async with self.connection() as conn:
            row = await conn.fetchrow(f"{ZONE_SELECT} WHERE dz.id = $1", zone_id)
        return _row_to_zone(row) if row else None

    async def list_zones(
        self,
        severity_level: Optional[SeverityLevel] = None,
        verified_only: bool = False,
        bounds: Optional[tuple[float, float, float, float]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[DangerZone]:
        """List zones newest first.

        Args:
            bounds: Optional (min_lat, max_lat, min_lng, max_lng) box
            limit: None returns every match (used before distance filtering)
        """
        conditions = []
        values: list[Any] = []
        if severity_level is not None:
            values.append(severity_level.value)
            conditions.append(f"dz.severity_level = ${len(values)}")
        if verified_only:
            conditions.append("dz.is_verified = TRUE")
        if bounds is not None:
            min_lat, max_lat, min_lng, max_lng = bounds
            values.extend([min_lat, max_lat, min_lng, max_lng])
            n = len(values)
            conditions.append(
                f"dz.latitude BETWEEN ${n - 3} AND ${n - 2} "
                f"AND dz.longitude BETWEEN ${n - 1} AND ${n}"
            )

        query = ZONE_SELECT
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY dz.created_at DESC"
        if limit is not None:
            values.extend([limit, offset])
            query += f" LIMIT ${len(values) - 1} OFFSET ${len(values)}"

        async with self.connection() as conn:
            rows = await conn.fetch(query, *values)
        return [_row_to_zone(row) for row in rows]

    async def update_zone(self, zone_id: UUID, **fields: Any) -> Optional[DangerZone]:
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        assignments = []
        values: list[Any] = [zone_id]
        for column, value in fields.items():
            values.append(value.value if isinstance(value, SeverityLevel) else value)
            assignments.append(f"{column} = ${len(values)}")
        values.append(datetime.now(timezone.utc))
        assignments.append(f"updated_at = ${len(values)}")

        async with self.connection() as conn:
            status = await conn.execute(
                f"UPDATE danger_zones SET {', '.join(assignments)} WHERE id = $1",
                *values,
            )
            if affected_rows(status) == 0:
                return None
            row = await conn.fetchrow(f"{ZONE_SELECT} WHERE dz.id = $1", zone_id)
        return _row_to_zone(row) if row else None

    async def delete_zone(self, zone_id: UUID) -> bool:
        async with self.connection() as conn:
            status = await conn.execute("DELETE FROM danger_zones WHERE id = $1", zone_id)
        return affected_rows(status) > 0
