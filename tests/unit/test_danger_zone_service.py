"""Unit tests for DangerZoneService and its geometry helpers."""

from uuid import uuid4

import pytest

from safezone.errors import NotFoundError, PermissionDeniedError
from safezone.models.danger_zone import (
    CreateDangerZoneRequest,
    DangerZoneSearch,
    SeverityLevel,
    UpdateDangerZoneRequest,
)
from safezone.services.danger_zone_service import bounding_box, haversine_km

from conftest import STRONG_PASSWORD

# Central Lisbon and a few reference points around it.
LISBON = (38.7223, -9.1393)
BELEM = (38.6979, -9.2066)  # ~6.4 km west
SINTRA = (38.8029, -9.3817)  # ~23 km north-west


@pytest.fixture
def zone_service(services):
    return services.danger_zones


@pytest.fixture
async def reporter(auth_service):
    return (await auth_service.register("reporter", "reporter@example.com", STRONG_PASSWORD)).user


def _request(point, title="Dark alley", severity=SeverityLevel.HIGH):
    return CreateDangerZoneRequest(
        latitude=point[0],
        longitude=point[1],
        title=title,
        description="Poor lighting after dark",
        severity_level=severity,
    )


class TestHaversine:
    """Tests for haversine_km."""

    def test_zero_distance(self):
        assert haversine_km(*LISBON, *LISBON) == 0

    def test_known_distance(self):
        # London to Paris is about 344 km.
        assert haversine_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.5)

    def test_symmetric(self):
        assert haversine_km(*LISBON, *SINTRA) == pytest.approx(haversine_km(*SINTRA, *LISBON))

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


class TestBoundingBox:
    """Tests for bounding_box."""

    def test_encloses_circle(self):
        min_lat, max_lat, min_lng, max_lng = bounding_box(*LISBON, 10)
        assert min_lat < LISBON[0] < max_lat
        assert min_lng < LISBON[1] < max_lng
        assert haversine_km(*LISBON, max_lat, LISBON[1]) >= 10 * 0.99

    def test_none_near_pole(self):
        assert bounding_box(89.99, 0, 50) is None

    def test_none_across_antimeridian(self):
        assert bounding_box(0, 179.99, 50) is None


class TestCreateAndGet:
    """Tests for create / get."""

    async def test_create_sets_reporter(self, zone_service, reporter):
        zone = await zone_service.create(reporter.id, _request(LISBON))
        assert zone.user_id == reporter.id
        assert zone.reporter.username == "reporter"
        assert zone.severity_level == SeverityLevel.HIGH
        assert zone.is_verified is False

    async def test_get_missing(self, zone_service):
        with pytest.raises(NotFoundError):
            await zone_service.get(uuid4())


class TestSearch:
    """Tests for search."""

    async def test_without_location_lists_newest_first(self, zone_service, reporter):
        first = await zone_service.create(reporter.id, _request(LISBON, "first"))
        second = await zone_service.create(reporter.id, _request(SINTRA, "second"))
        result = await zone_service.search(DangerZoneSearch())
        assert [z.id for z in result.danger_zones] == [second.id, first.id]
        assert all(z.distance_km is None for z in result.danger_zones)

    async def test_radius_filters_by_distance(self, zone_service, reporter):
        near = await zone_service.create(reporter.id, _request(BELEM, "near"))
        await zone_service.create(reporter.id, _request(SINTRA, "far"))

        result = await zone_service.search(
            DangerZoneSearch(latitude=LISBON[0], longitude=LISBON[1], radius_km=10)
        )
        assert [z.id for z in result.danger_zones] == [near.id]
        assert result.total == 1
        assert result.danger_zones[0].distance_km == pytest.approx(
            haversine_km(*LISBON, *BELEM), abs=0.001
        )

    async def test_default_radius_is_ten_km(self):
        assert DangerZoneSearch(latitude=0, longitude=0).radius_km == 10

    async def test_pagination_after_distance_filter(self, zone_service, reporter):
        await zone_service.create(reporter.id, _request(SINTRA, "far"))
        for i in range(3):
            await zone_service.create(reporter.id, _request(BELEM, f"near {i}"))

        result = await zone_service.search(
            DangerZoneSearch(latitude=LISBON[0], longitude=LISBON[1], limit=2, offset=1)
        )
        assert result.total == 3
        assert [z.title for z in result.danger_zones] == ["near 1", "near 0"]

    async def test_severity_filter(self, zone_service, reporter):
        await zone_service.create(reporter.id, _request(LISBON, severity=SeverityLevel.LOW))
        critical = await zone_service.create(
            reporter.id, _request(LISBON, severity=SeverityLevel.CRITICAL)
        )
        result = await zone_service.search(DangerZoneSearch(severity_level=SeverityLevel.CRITICAL))
        assert [z.id for z in result.danger_zones] == [critical.id]


class TestOwnership:
    """Tests for update / delete."""

    async def test_owner_can_update(self, zone_service, reporter):
        zone = await zone_service.create(reporter.id, _request(LISBON))
        updated = await zone_service.update(
            zone.id, reporter.id, UpdateDangerZoneRequest(title="Renamed")
        )
        assert updated.title == "Renamed"
        assert updated.severity_level == SeverityLevel.HIGH

    async def test_other_user_cannot_update(self, zone_service, reporter):
        zone = await zone_service.create(reporter.id, _request(LISBON))
        with pytest.raises(PermissionDeniedError):
            await zone_service.update(zone.id, uuid4(), UpdateDangerZoneRequest(title="Mine now"))

    async def test_owner_can_delete(self, zone_service, reporter):
        zone = await zone_service.create(reporter.id, _request(LISBON))
        await zone_service.delete(zone.id, reporter.id)
        with pytest.raises(NotFoundError):
            await zone_service.get(zone.id)

    async def test_other_user_cannot_delete(self, zone_service, reporter):
        zone = await zone_service.create(reporter.id, _request(LISBON))
        with pytest.raises(PermissionDeniedError):
            await zone_service.delete(zone.id, uuid4())

    async def test_delete_missing(self, zone_service, reporter):
        with pytest.raises(NotFoundError):
            await zone_service.delete(uuid4(), reporter.id)
