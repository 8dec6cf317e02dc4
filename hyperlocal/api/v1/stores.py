import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from hyperlocal.api.deps import get_actor, get_tenant
from hyperlocal.core.actor import Actor
from hyperlocal.core.clock import utcnow
from hyperlocal.schemas.response import SuccessResponse
from hyperlocal.schemas.store import (
    StoreClosureUpdate,
    StoreCreateRequest,
    StoreResponse,
    StoreStatusUpdate,
)
from hyperlocal.services.geometry import Point
from hyperlocal.services.store_service import (
    create_store,
    get_store,
    list_stores,
    set_open,
    set_temporary_closure,
)

router = APIRouter()
log = logging.getLogger("hyperlocal.api.stores")


@router.get("/", response_model=SuccessResponse)
async def list_stores_endpoint(
    zone_id: Optional[UUID] = None,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    tenant: str = Depends(get_tenant),
):
    """Active stores; with lat/lng only those whose delivery radius covers the point."""
    near = Point(lat, lng) if lat is not None and lng is not None else None
    now = utcnow()
    stores = await list_stores(tenant, zone_id=zone_id, near=near)
    data = [StoreResponse.from_model(s, distance_km=d, now=now).model_dump(mode="json") for s, d in stores]
    return SuccessResponse(data=data)


@router.get("/{store_id}", response_model=SuccessResponse)
async def get_store_endpoint(store_id: UUID, tenant: str = Depends(get_tenant)):
    store = await get_store(store_id, tenant)
    return SuccessResponse(data=StoreResponse.from_model(store, now=utcnow()).model_dump(mode="json"))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_store_endpoint(
    payload: StoreCreateRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    hours = {day: h.model_dump() for day, h in payload.operating_hours.items()} if payload.operating_hours else None
    store = await create_store(
        tenant=tenant,
        actor=actor,
        zone_id=payload.zone_id,
        name=payload.name,
        location=Point(payload.location.lat, payload.location.lng),
        category=payload.category,
        operating_hours=hours,
        commission_rate=payload.commission_rate,
        prep_time_minutes=payload.prep_time_minutes,
        delivery_radius_km=payload.delivery_radius_km,
    )
    return SuccessResponse(data=StoreResponse.from_model(store).model_dump(mode="json"))


@router.patch("/{store_id}/status", response_model=SuccessResponse)
async def update_store_status_endpoint(
    store_id: UUID,
    payload: StoreStatusUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    store = await set_open(store_id, tenant, payload.is_open, actor)
    return SuccessResponse(data={"id": str(store.id), "is_open": store.is_open})


@router.patch("/{store_id}/closure", response_model=SuccessResponse)
async def update_store_closure_endpoint(
    store_id: UUID,
    payload: StoreClosureUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    store = await set_temporary_closure(
        store_id, tenant, actor, payload.is_closed, payload.reason, payload.until
    )
    return SuccessResponse(data=StoreResponse.from_model(store).model_dump(mode="json"))
