import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from hyperlocal.api.deps import get_actor, get_tenant
from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.errors import AccessDenied, ValidationFailed
from hyperlocal.models.order import OrderStatus
from hyperlocal.schemas.order import OrderSummaryResponse
from hyperlocal.schemas.response import Pagination, SuccessResponse
from hyperlocal.schemas.rider import (
    AvailabilityUpdate,
    LocationUpdate,
    RiderDeliveryUpdate,
    RiderRegisterRequest,
    RiderResponse,
)
from hyperlocal.services.geometry import Point, haversine_distance_km
from hyperlocal.services.order_service import list_rider_orders
from hyperlocal.services.rider_service import (
    accept_assignment,
    complete_delivery,
    eligible_riders,
    get_earnings,
    get_rider,
    nearest_available,
    pick_up,
    register_rider,
    set_availability,
    update_location,
)

router = APIRouter()
log = logging.getLogger("hyperlocal.api.riders")


def _ensure_self(rider_id: UUID, actor: Actor) -> None:
    """Riders act only on their own profile; admins may act on any."""
    if actor.role == Role.ADMIN:
        return
    if actor.role != Role.RIDER or actor.user_id != str(rider_id):
        raise AccessDenied("You can only act on your own rider profile.")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def register_rider_endpoint(
    payload: RiderRegisterRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """The profile id is the rider's user id, so the rider can act on it afterwards."""
    if actor.role == Role.RIDER:
        try:
            rider_id = UUID(actor.user_id)
        except ValueError:
            raise ValidationFailed("Rider user id must be a UUID.")
    elif actor.role == Role.ADMIN:
        if payload.user_id is None:
            raise ValidationFailed("user_id is required when registering a rider for someone else.")
        rider_id = payload.user_id
    else:
        raise AccessDenied("Only riders and admins can register rider profiles.")

    rider = await register_rider(
        tenant=tenant,
        name=payload.name,
        phone=payload.phone,
        zone_ids=payload.zone_ids,
        vehicle_type=payload.vehicle_type,
        vehicle_number=payload.vehicle_number,
        rider_id=rider_id,
    )
    log.info(f"Rider profile {rider.id} registered by {actor.user_id}.")
    return SuccessResponse(data=RiderResponse.from_model(rider).model_dump(mode="json"))


@router.get("/nearest", response_model=SuccessResponse)
async def nearest_rider_endpoint(
    zone_id: UUID,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Closest eligible rider in the zone within the search radius."""
    if not actor.is_privileged and actor.role != Role.SELLER:
        raise AccessDenied("Not allowed to search riders.")
    point = Point(lat, lng)
    rider = await nearest_available(point, zone_id, tenant)
    distance = haversine_distance_km(point, rider.location)
    return SuccessResponse(data=RiderResponse.from_model(rider, distance_km=round(distance, 3)).model_dump(mode="json"))


@router.get("/eligible", response_model=SuccessResponse)
async def eligible_riders_endpoint(
    zone_id: UUID,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    if not actor.is_privileged:
        raise AccessDenied("Only admins can list eligible riders.")
    riders = await eligible_riders(zone_id, tenant)
    return SuccessResponse(data=[RiderResponse.from_model(r).model_dump(mode="json") for r in riders])


@router.get("/{rider_id}", response_model=SuccessResponse)
async def get_rider_endpoint(
    rider_id: UUID,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    rider = await get_rider(rider_id, tenant)
    return SuccessResponse(data=RiderResponse.from_model(rider).model_dump(mode="json"))


@router.put("/{rider_id}/location", response_model=SuccessResponse)
async def update_location_endpoint(
    rider_id: UUID,
    payload: LocationUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    rider = await update_location(rider_id, tenant, payload.lat, payload.lng)
    return SuccessResponse(data=RiderResponse.from_model(rider).model_dump(mode="json"))


@router.put("/{rider_id}/availability", response_model=SuccessResponse)
async def update_availability_endpoint(
    rider_id: UUID,
    payload: AvailabilityUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    rider = await set_availability(rider_id, tenant, payload.status)
    return SuccessResponse(data=RiderResponse.from_model(rider).model_dump(mode="json"))


@router.post("/{rider_id}/orders/{order_id}/accept", response_model=SuccessResponse)
async def accept_order_endpoint(
    rider_id: UUID,
    order_id: UUID,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """First rider to accept wins; everyone else gets 409."""
    _ensure_self(rider_id, actor)
    order = await accept_assignment(tenant, order_id, rider_id)
    return SuccessResponse(data=OrderSummaryResponse.from_model(order).model_dump(mode="json"))


@router.put("/{rider_id}/orders/{order_id}/status", response_model=SuccessResponse)
async def delivery_status_endpoint(
    rider_id: UUID,
    order_id: UUID,
    payload: RiderDeliveryUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    if payload.status == "picked_up":
        order = await pick_up(tenant, order_id, rider_id, payload.note)
    else:
        order = await complete_delivery(tenant, order_id, rider_id, payload.note)
    return SuccessResponse(data=OrderSummaryResponse.from_model(order).model_dump(mode="json"))


@router.get("/{rider_id}/orders", response_model=SuccessResponse)
async def rider_orders_endpoint(
    rider_id: UUID,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    orders, total = await list_rider_orders(tenant, rider_id, status_filter, page, limit)
    return SuccessResponse(
        data=[OrderSummaryResponse.from_model(o).model_dump(mode="json") for o in orders],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{rider_id}/earnings", response_model=SuccessResponse)
async def earnings_endpoint(
    rider_id: UUID,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    _ensure_self(rider_id, actor)
    earnings = await get_earnings(rider_id, tenant)
    return SuccessResponse(data=earnings)
