"""Danger zone report models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class SeverityLevel(str, Enum):
    """How dangerous a reported zone is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Reporter(BaseModel):
    """The user who reported a zone."""

    id: UUID
    username: str
    name: str = ""


class DangerZone(BaseModel):
    """A geotagged danger report."""

    id: UUID
    user_id: UUID
    latitude: float
    longitude: float
    title: str
    description: Optional[str] = None
    severity_level: SeverityLevel = SeverityLevel.MEDIUM
    is_verified: bool = False
    verification_count: int = 0
    created_at: datetime
    updated_at: datetime
    reporter: Optional[Reporter] = None
    distance_km: Optional[float] = None


class CreateDangerZoneRequest(BaseModel):
    """Report a new danger zone.

    Attributes:
        latitude: Decimal degrees, -90 to 90
        longitude: Decimal degrees, -180 to 180
        title: Short label (1-100 chars)
        description: What makes the place dangerous
        severity_level: low, medium (default), high or critical
    """

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    severity_level: SeverityLevel = SeverityLevel.MEDIUM

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace only")
        return stripped


class UpdateDangerZoneRequest(BaseModel):
    """Partial update of a zone by its reporter."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    severity_level: Optional[SeverityLevel] = None

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace only")
        return stripped

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateDangerZoneRequest":
        if self.title is None and self.description is None and self.severity_level is None:
            raise ValueError("Provide at least one of title, description or severity_level")
        return self


class DangerZoneSearch(BaseModel):
    """Filters for listing zones."""

    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: float = Field(default=10.0, gt=0, le=20000)
    severity_level: Optional[SeverityLevel] = None
    verified_only: bool = False
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class DangerZoneList(BaseModel):
    danger_zones: list[DangerZone]
    total: int
    filters: DangerZoneSearch
