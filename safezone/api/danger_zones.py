"""Danger zone API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from safezone.api.dependencies import get_current_user, get_danger_zone_service
from safezone.models.auth import MessageResponse
from safezone.models.danger_zone import (
    CreateDangerZoneRequest,
    DangerZone,
    DangerZoneList,
    DangerZoneSearch,
    SeverityLevel,
    UpdateDangerZoneRequest,
)
from safezone.models.user import User
from safezone.services.danger_zone_service import DangerZoneService

router = APIRouter(prefix="/api/danger-zones", tags=["Danger zones"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_danger_zone(
    request: CreateDangerZoneRequest,
    current_user: User = Depends(get_current_user),
    service: DangerZoneService = Depends(get_danger_zone_service),
) -> DangerZone:
    return await service.create(current_user.id, request)


@router.get("")
async def list_danger_zones(
    latitude: Optional[float] = Query(default=None, ge=-90, le=90),
    longitude: Optional[float] = Query(default=None, ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=20000),
    severity_level: Optional[SeverityLevel] = None,
    verified_only: bool = False,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    service: DangerZoneService = Depends(get_danger_zone_service),
) -> DangerZoneList:
    """List zones, optionally only those within ``radius_km`` of a point.

    Both ``latitude`` and ``longitude`` are needed for a radius search.
    """
    search = DangerZoneSearch(
        latitude=latitude,
        longitude=longitude,
        radius_km=radius_km,
        severity_level=severity_level,
        verified_only=verified_only,
        limit=limit,
        offset=offset,
    )
    return await service.search(search)


@router.get("/{zone_id}")
async def get_danger_zone(
    zone_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DangerZoneService = Depends(get_danger_zone_service),
) -> DangerZone:
    return await service.get(zone_id)


@router.put("/{zone_id}")
async def update_danger_zone(
    zone_id: UUID,
    request: UpdateDangerZoneRequest,
    current_user: User = Depends(get_current_user),
    service: DangerZoneService = Depends(get_danger_zone_service),
) -> DangerZone:
    """Update a zone you reported.

    Raises:
        NotFoundError (404): No such zone
        PermissionDeniedError (403): Zone reported by someone else
    """
    return await service.update(zone_id, current_user.id, request)


@router.delete("/{zone_id}")
async def delete_danger_zone(
    zone_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DangerZoneService = Depends(get_danger_zone_service),
) -> MessageResponse:
    await service.delete(zone_id, current_user.id)
    return MessageResponse(message="Danger zone deleted successfully")
