import logging
from typing import List, Optional, Sequence
from uuid import UUID

from tortoise.expressions import Q

from hyperlocal.core.clock import Clock, utcnow
from hyperlocal.core.errors import NotFound, OutOfServiceArea, ValidationFailed
from hyperlocal.models.store import Store
from hyperlocal.models.zone import Zone
from hyperlocal.services.geometry import (
    Point,
    Polygon,
    haversine_distance_km,
    point_in_polygon,
    polygon_area,
    polygons_overlap,
)

log = logging.getLogger("hyperlocal.zones")


def _resolution_key(zone: Zone):
    # Overlapping zones should not exist; if they do, the smallest, then oldest, wins
    return (polygon_area(zone.polygon), zone.created_at, str(zone.id))


async def resolve_zone(point: Point, tenant: str, conn=None) -> Zone:
    """
    Returns the active zone of ``tenant`` whose polygon contains ``point``.

    Raises OutOfServiceArea when no zone covers the point.
    """
    zones = await Zone.filter(tenant=tenant, is_active=True).using_db(conn)
    matches = [z for z in zones if point_in_polygon(point, z.polygon)]
    if not matches:
        raise OutOfServiceArea(f"Location ({point.lat}, {point.lng}) is not serviceable.")
    if len(matches) > 1:
        log.warning(f"Point ({point.lat}, {point.lng}) matches {len(matches)} zones in tenant {tenant}.")
    return min(matches, key=_resolution_key)


async def nearby_zones(point: Point, max_distance_km: float, tenant: str) -> List[Zone]:
    """Active zones whose center lies within ``max_distance_km``, nearest first."""
    zones = await Zone.filter(tenant=tenant, is_active=True)
    ranked = []
    for zone in zones:
        distance = haversine_distance_km(point, zone.center)
        if distance <= max_distance_km:
            ranked.append((distance, zone))
    ranked.sort(key=lambda pair: (pair[0], str(pair[1].id)))
    return [zone for _, zone in ranked]


async def serviceable_stores(zone: Zone, *, clock: Clock = utcnow) -> List[Store]:
    """
    Active, open stores of the zone that are not temporarily closed; best
    rated first. A closure whose expiry has passed no longer counts.
    """
    return await Store.filter(
        Q(temp_closed=False) | Q(temp_closure_until__lte=clock()),
        zone_id=zone.id,
        tenant=zone.tenant,
        is_active=True,
        is_open=True,
    ).order_by("-rating_average", "name")


async def check_serviceability(point: Point, tenant: str, *, clock: Clock = utcnow):
    zone = await resolve_zone(point, tenant)
    stores = await serviceable_stores(zone, clock=clock)
    return zone, stores


async def get_zone(zone_id: UUID, tenant: str) -> Zone:
    zone = await Zone.get_or_none(id=zone_id, tenant=tenant)
    if not zone:
        raise NotFound(f"Zone {zone_id} not found.")
    return zone


async def list_zones(tenant: str) -> List[Zone]:
    return await Zone.filter(tenant=tenant, is_active=True).order_by("name")


async def create_zone(
    tenant: str,
    name: str,
    code: str,
    boundary: Sequence[Sequence[float]],
    radius_km: float,
    center: Optional[Point] = None,
    eta_min: int = 15,
    eta_max: int = 45,
) -> Zone:
    """
    Creates a zone after checking that it does not overlap any active zone of
    the same tenant. Zones may share edges.
    """
    try:
        polygon = Polygon.from_pairs(boundary)
    except (ValueError, TypeError) as e:
        raise ValidationFailed(f"Invalid zone boundary: {e}")
    if eta_min > eta_max:
        raise ValidationFailed("eta_min cannot exceed eta_max.")

    code = code.strip().upper()
    if await Zone.filter(tenant=tenant, code=code).exists():
        raise ValidationFailed(f"Zone code {code} already exists.")

    for existing in await Zone.filter(tenant=tenant, is_active=True):
        if polygons_overlap(polygon, existing.polygon):
            raise ValidationFailed(f"Zone overlaps existing zone {existing.code}.")

    if center is None:
        lats = [v.lat for v in polygon.vertices]
        lngs = [v.lng for v in polygon.vertices]
        center = Point((min(lats) + max(lats)) / 2, (min(lngs) + max(lngs)) / 2)

    zone = await Zone.create(
        tenant=tenant,
        name=name,
        code=code,
        boundary=polygon.to_pairs(),
        center_lat=center.lat,
        center_lng=center.lng,
        radius_km=radius_km,
        eta_min=eta_min,
        eta_max=eta_max,
    )
    log.info(f"Zone {zone.code} created for tenant {tenant}.")
    return zone
