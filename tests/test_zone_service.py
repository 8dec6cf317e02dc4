from datetime import timedelta

import pytest

from conftest import (
    HSR,
    INSIDE_HSR,
    INSIDE_KORAMANGALA,
    KORAMANGALA,
    NOON_IST,
    TENANT,
    fixed_clock,
    make_store,
    make_zone,
)
from hyperlocal.core.errors import NotFound, OutOfServiceArea, ValidationFailed
from hyperlocal.services.geometry import Point
from hyperlocal.services.zone_service import (
    check_serviceability,
    create_zone,
    get_zone,
    nearby_zones,
    resolve_zone,
    serviceable_stores,
)


class TestResolveZone:
    async def test_point_resolves_to_covering_zone(self, db):
        zone = await make_zone("KOR")
        resolved = await resolve_zone(Point(*INSIDE_KORAMANGALA), TENANT)
        assert resolved.id == zone.id

    async def test_point_outside_every_zone(self, db):
        await make_zone("KOR")
        with pytest.raises(OutOfServiceArea):
            await resolve_zone(Point(13.0, 77.0), TENANT)

    async def test_resolution_is_repeatable(self, db):
        await make_zone("KOR")
        await make_zone("HSR", HSR)
        point = Point(12.930, 77.635)  # on the shared edge
        first = await resolve_zone(point, TENANT)
        for _ in range(3):
            assert (await resolve_zone(point, TENANT)).id == first.id

    async def test_other_tenant_zones_are_ignored(self, db):
        await make_zone("KOR", tenant="othershop")
        with pytest.raises(OutOfServiceArea):
            await resolve_zone(Point(*INSIDE_KORAMANGALA), TENANT)

    async def test_inactive_zone_is_ignored(self, db):
        await make_zone("KOR", is_active=False)
        with pytest.raises(OutOfServiceArea):
            await resolve_zone(Point(*INSIDE_KORAMANGALA), TENANT)

    async def test_smallest_overlapping_zone_wins(self, db):
        await make_zone("BIG", [[12.90, 77.60], [12.90, 77.66], [12.96, 77.66], [12.96, 77.60]])
        small = await make_zone("KOR")
        resolved = await resolve_zone(Point(*INSIDE_KORAMANGALA), TENANT)
        assert resolved.id == small.id

    async def test_equal_area_falls_back_to_oldest(self, db):
        newer = await make_zone("NEW", created_at=NOON_IST)
        older = await make_zone("OLD", created_at=NOON_IST - timedelta(days=1))
        resolved = await resolve_zone(Point(*INSIDE_KORAMANGALA), TENANT)
        assert resolved.id == older.id != newer.id


class TestCreateZone:
    async def test_creates_zone_with_upper_case_code(self, db):
        zone = await create_zone(TENANT, "Koramangala", "kor", KORAMANGALA, radius_km=3)
        assert zone.code == "KOR"
        assert zone.center_lat == pytest.approx(12.930)
        assert zone.center_lng == pytest.approx(77.6285)

    async def test_rejects_overlapping_zone(self, db):
        await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        shifted = [[12.930, 77.630], [12.930, 77.640], [12.940, 77.640], [12.940, 77.630]]
        with pytest.raises(ValidationFailed):
            await create_zone(TENANT, "Shifted", "SHF", shifted, radius_km=3)

    async def test_rejects_zone_overlapping_along_a_shared_edge(self, db):
        await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        # Same longitude span, northern half overlaps KOR
        stacked = [[12.930, 77.622], [12.930, 77.635], [12.940, 77.635], [12.940, 77.622]]
        with pytest.raises(ValidationFailed):
            await create_zone(TENANT, "Stacked", "STK", stacked, radius_km=3)

    async def test_rejects_zone_inside_corner_of_existing(self, db):
        await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        corner = [[12.925, 77.622], [12.925, 77.628], [12.930, 77.628], [12.930, 77.622]]
        with pytest.raises(ValidationFailed):
            await create_zone(TENANT, "Corner", "CNR", corner, radius_km=3)

    async def test_neighbouring_zone_is_allowed(self, db):
        await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        zone = await create_zone(TENANT, "HSR Layout", "HSR", HSR, radius_km=3)
        assert zone.id

    async def test_rejects_duplicate_code(self, db):
        await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        with pytest.raises(ValidationFailed):
            await create_zone(TENANT, "Again", "kor", HSR, radius_km=3)

    async def test_rejects_degenerate_boundary(self, db):
        with pytest.raises(ValidationFailed):
            await create_zone(TENANT, "Line", "LIN", [[12.9, 77.6], [12.95, 77.65]], radius_km=3)

    async def test_same_polygon_in_another_tenant(self, db):
        await create_zone("othershop", "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        zone = await create_zone(TENANT, "Koramangala", "KOR", KORAMANGALA, radius_km=3)
        assert zone.tenant == TENANT


class TestServiceability:
    async def test_stores_best_rated_first_and_closed_excluded(self, db):
        zone = await make_zone("KOR")
        await make_store(zone, name="Alpha", rating_average=3.5)
        await make_store(zone, name="Beta", rating_average=4.8)
        await make_store(zone, name="Closed", rating_average=5.0, is_open=False)
        await make_store(zone, name="Paused", rating_average=5.0, temp_closed=True)

        stores = await serviceable_stores(zone)
        assert [s.name for s in stores] == ["Beta", "Alpha"]

    async def test_expired_closure_is_serviceable(self, db):
        zone = await make_zone("KOR")
        await make_store(zone, name="Reopened", temp_closed=True, temp_closure_until=NOON_IST - timedelta(hours=1))
        await make_store(zone, name="Paused", temp_closed=True, temp_closure_until=NOON_IST + timedelta(hours=1))
        await make_store(zone, name="Indefinite", temp_closed=True)

        stores = await serviceable_stores(zone, clock=fixed_clock())
        assert [s.name for s in stores] == ["Reopened"]
        assert stores[0].is_currently_open(NOON_IST)

    async def test_check_serviceability(self, db):
        zone = await make_zone("KOR")
        await make_store(zone)
        resolved, stores = await check_serviceability(Point(*INSIDE_KORAMANGALA), TENANT)
        assert resolved.id == zone.id
        assert len(stores) == 1

    async def test_nearby_zones_nearest_first(self, db):
        kor = await make_zone("KOR")
        hsr = await make_zone("HSR", HSR)
        await make_zone("FAR", [[13.5, 77.6], [13.5, 77.7], [13.6, 77.7], [13.6, 77.6]])

        zones = await nearby_zones(Point(*INSIDE_HSR), 10, TENANT)
        assert [z.id for z in zones] == [hsr.id, kor.id]

    async def test_get_zone_of_other_tenant(self, db):
        zone = await make_zone("KOR", tenant="othershop")
        with pytest.raises(NotFound):
            await get_zone(zone.id, TENANT)
