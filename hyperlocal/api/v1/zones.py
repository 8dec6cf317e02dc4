import logging
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from hyperlocal.api.deps import get_actor, get_tenant
from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.config import NEARBY_ZONE_RADIUS_KM
from hyperlocal.core.errors import AccessDenied
from hyperlocal.schemas.response import SuccessResponse
from hyperlocal.schemas.store import StoreResponse
from hyperlocal.schemas.zone import LatLng, ZoneCreateRequest, ZoneResponse
from hyperlocal.services.geometry import Point
from hyperlocal.services.zone_service import (
    check_serviceability,
    create_zone,
    get_zone,
    list_zones,
    nearby_zones,
)

router = APIRouter()
log = logging.getLogger("hyperlocal.api.zones")


@router.post("/check", response_model=SuccessResponse)
async def check_serviceability_endpoint(payload: LatLng, tenant: str = Depends(get_tenant)):
    """Resolves the zone covering a coordinate and lists its serviceable stores."""
    zone, stores = await check_serviceability(Point(payload.lat, payload.lng), tenant)
    data = {
        "zone": ZoneResponse.from_model(zone).model_dump(mode="json"),
        "stores": [StoreResponse.from_model(s).model_dump(mode="json") for s in stores],
    }
    return SuccessResponse(data=data)


@router.get("/nearby", response_model=SuccessResponse)
async def nearby_zones_endpoint(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    max_distance_km: float = Query(NEARBY_ZONE_RADIUS_KM, gt=0),
    tenant: str = Depends(get_tenant),
):
    zones = await nearby_zones(Point(lat, lng), max_distance_km, tenant)
    return SuccessResponse(data=[ZoneResponse.from_model(z).model_dump(mode="json") for z in zones])


@router.get("/", response_model=SuccessResponse)
async def list_zones_endpoint(tenant: str = Depends(get_tenant)):
    zones = await list_zones(tenant)
    return SuccessResponse(data=[ZoneResponse.from_model(z).model_dump(mode="json") for z in zones])


@router.get("/{zone_id}", response_model=SuccessResponse)
async def get_zone_endpoint(zone_id: UUID, tenant: str = Depends(get_tenant)):
    zone = await get_zone(zone_id, tenant)
    return SuccessResponse(data=ZoneResponse.from_model(zone).model_dump(mode="json"))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_zone_endpoint(
    payload: ZoneCreateRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Creates a zone (admin only). Overlapping zones are rejected."""
    if actor.role != Role.ADMIN:
        raise AccessDenied("Only admins can create zones.")
    zone = await create_zone(
        tenant=tenant,
        name=payload.name,
        code=payload.code,
        boundary=payload.boundary,
        radius_km=payload.radius_km,
        center=Point(payload.center.lat, payload.center.lng) if payload.center else None,
        eta_min=payload.eta_min,
        eta_max=payload.eta_max,
    )
    log.info(f"Zone {zone.code} created by {actor.user_id}.")
    return SuccessResponse(data=ZoneResponse.from_model(zone).model_dump(mode="json"))
