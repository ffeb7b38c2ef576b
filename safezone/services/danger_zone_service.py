"""Danger zone reports: creation, radius search and owner-only edits."""

import math
from typing import Optional
from uuid import UUID

import structlog

from safezone.errors import NotFoundError, PermissionDeniedError
from safezone.models.danger_zone import (
    CreateDangerZoneRequest,
    DangerZone,
    DangerZoneList,
    DangerZoneSearch,
    UpdateDangerZoneRequest,
)
from safezone.storage.protocols import DangerZoneStore

logger = structlog.get_logger(__name__)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LATITUDE = 111.32


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(
    latitude: float, longitude: float, radius_km: float
) -> Optional[tuple[float, float, float, float]]:
    """A (min_lat, max_lat, min_lng, max_lng) box enclosing the search circle.

    Returns None when the circle reaches a pole or crosses the antimeridian;
    the caller then filters by distance alone.
    """
    d_lat = radius_km / KM_PER_DEGREE_LATITUDE
    min_lat, max_lat = latitude - d_lat, latitude + d_lat
    if min_lat <= -90 or max_lat >= 90:
        return None

    cos_lat = math.cos(math.radians(latitude))
    d_lng = radius_km / (KM_PER_DEGREE_LATITUDE * cos_lat)
    min_lng, max_lng = longitude - d_lng, longitude + d_lng
    if min_lng < -180 or max_lng > 180:
        return None

    return min_lat, max_lat, min_lng, max_lng


class DangerZoneService:
    """Reports are public to read; only the reporter may change or delete one."""

    def __init__(self, store: DangerZoneStore):
        self.store = store

    async def create(self, user_id: UUID, request: CreateDangerZoneRequest) -> DangerZone:
        zone = await self.store.insert_zone(
            user_id=user_id,
            latitude=request.latitude,
            longitude=request.longitude,
            title=request.title,
            description=request.description,
            severity_level=request.severity_level,
        )
        logger.info(
            "danger_zone_created",
            zone_id=str(zone.id),
            user_id=str(user_id),
            severity_level=zone.severity_level.value,
        )
        return zone

    async def search(self, search: DangerZoneSearch) -> DangerZoneList:
        """List zones newest first, optionally within ``radius_km`` of a point.

        Without a location, zones come back newest first and are paginated by
        the store. With one, the radius filter runs before pagination so
        ``total`` counts only zones inside the circle.
        """
        if not search.has_location:
            zones = await self.store.list_zones(
                severity_level=search.severity_level,
                verified_only=search.verified_only,
                limit=search.limit,
                offset=search.offset,
            )
            return DangerZoneList(danger_zones=zones, total=len(zones), filters=search)

        candidates = await self.store.list_zones(
            severity_level=search.severity_level,
            verified_only=search.verified_only,
            bounds=bounding_box(search.latitude, search.longitude, search.radius_km),
        )

        nearby = []
        for zone in candidates:
            distance = haversine_km(search.latitude, search.longitude, zone.latitude, zone.longitude)
            if distance <= search.radius_km:
                zone.distance_km = round(distance, 3)
                nearby.append(zone)

        page = nearby[search.offset : search.offset + search.limit]
        return DangerZoneList(danger_zones=page, total=len(nearby), filters=search)

    async def get(self, zone_id: UUID) -> DangerZone:
        zone = await self.store.get_zone(zone_id)
        if zone is None:
            raise NotFoundError("Danger zone not found")
        return zone

    async def _owned(self, zone_id: UUID, user_id: UUID) -> DangerZone:
        zone = await self.get(zone_id)
        if zone.user_id != user_id:
            logger.warning("danger_zone_access_denied", zone_id=str(zone_id), user_id=str(user_id))
            raise PermissionDeniedError("You can only modify danger zones you reported")
        return zone

    async def update(
        self, zone_id: UUID, user_id: UUID, request: UpdateDangerZoneRequest
    ) -> DangerZone:
        zone = await self._owned(zone_id, user_id)
        fields = request.model_dump(exclude_none=True)
        if not fields:
            return zone

        updated = await self.store.update_zone(zone_id, **fields)
        if updated is None:
            raise NotFoundError("Danger zone not found")
        logger.info("danger_zone_updated", zone_id=str(zone_id), fields=sorted(fields))
        return updated

    async def delete(self, zone_id: UUID, user_id: UUID) -> None:
        await self._owned(zone_id, user_id)
        if not await self.store.delete_zone(zone_id):
            raise NotFoundError("Danger zone not found")
        logger.info("danger_zone_deleted", zone_id=str(zone_id), user_id=str(user_id))
