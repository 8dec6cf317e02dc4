import logging
from typing import List, Optional
from uuid import UUID

from tortoise.expressions import F
from tortoise.transactions import in_transaction

from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.clock import Clock, utcnow
from hyperlocal.core.config import RIDER_SEARCH_RADIUS_KM
from hyperlocal.core.errors import (
    AccessDenied,
    AlreadyAssigned,
    InvalidTransition,
    NotFound,
    OutOfServiceArea,
    ValidationFailed,
)
from hyperlocal.events.outbox_utility import create_outbox_event
from hyperlocal.models.order import HistoryActor, Order, OrderStatus
from hyperlocal.models.rider import Rider, RiderStatus, VehicleType
from hyperlocal.models.zone import Zone
from hyperlocal.services.geometry import Point, haversine_distance_km
from hyperlocal.services.order_service import append_history, transition

log = logging.getLogger("hyperlocal.riders")


async def get_rider(rider_id: UUID, tenant: str, conn=None) -> Rider:
    rider = await Rider.get_or_none(id=rider_id, tenant=tenant).using_db(conn)
    if not rider:
        raise NotFound(f"Rider {rider_id} not found.")
    return rider


async def register_rider(
    tenant: str,
    name: str,
    phone: str,
    zone_ids: List[UUID],
    vehicle_type: VehicleType = VehicleType.BIKE,
    vehicle_number: str = None,
    rider_id: Optional[UUID] = None,
) -> Rider:
    """
    New riders start offline and unverified. ``rider_id`` is the user id the
    profile belongs to; without it a fresh id is generated.
    """
    if not zone_ids:
        raise ValidationFailed("At least one zone is required.")
    if rider_id is not None and await Rider.filter(id=rider_id).exists():
        raise ValidationFailed("Rider profile already exists for this user.")
    if await Rider.filter(tenant=tenant, phone=phone).exists():
        raise ValidationFailed("Rider with this phone already exists.")
    zones = await Zone.filter(id__in=zone_ids, tenant=tenant)
    if len(zones) != len(set(zone_ids)):
        raise NotFound("One or more zones not found.")

    extra = {"id": rider_id} if rider_id is not None else {}
    rider = await Rider.create(
        **extra,
        tenant=tenant,
        name=name,
        phone=phone,
        vehicle_type=vehicle_type,
        vehicle_number=vehicle_number,
    )
    await rider.zones.add(*zones)
    log.info(f"Rider {rider.id} registered in {len(zones)} zone(s).")
    return rider


async def eligible_riders(zone_id: UUID, tenant: str) -> List[Rider]:
    """Online, active and verified riders serving ``zone_id``."""
    return await Rider.filter(
        tenant=tenant,
        zones__id=zone_id,
        status=RiderStatus.ONLINE,
        is_active=True,
        is_verified=True,
    ).distinct()


async def nearest_available(point: Point, zone_id: UUID, tenant: str) -> Rider:
    """
    Nearest eligible rider within RIDER_SEARCH_RADIUS_KM of ``point``.
    Equal distances go to the rider with the freshest location.
    """
    candidates = []
    for rider in await eligible_riders(zone_id, tenant):
        location = rider.location
        if location is None:
            continue
        distance = haversine_distance_km(point, location)
        if distance <= RIDER_SEARCH_RADIUS_KM:
            freshness = rider.location_updated_at.timestamp() if rider.location_updated_at else 0
            candidates.append((distance, -freshness, str(rider.id), rider))
    if not candidates:
        raise NotFound("No available rider nearby.")
    candidates.sort(key=lambda c: c[:3])
    return candidates[0][3]


async def update_location(rider_id: UUID, tenant: str, lat: float, lng: float, *, clock: Clock = utcnow) -> Rider:
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationFailed("Coordinates out of range.")
    rider = await get_rider(rider_id, tenant)
    rider.current_lat = lat
    rider.current_lng = lng
    rider.location_updated_at = clock()
    await rider.save(update_fields=["current_lat", "current_lng", "location_updated_at"])
    return rider


async def set_availability(rider_id: UUID, tenant: str, status: RiderStatus) -> Rider:
    rider = await get_rider(rider_id, tenant)
    if status == RiderStatus.ONLINE and not (rider.is_active and rider.is_verified):
        raise AccessDenied("Cannot go online. Please complete verification.")
    if status == RiderStatus.BUSY:
        raise ValidationFailed("Busy is set by order assignment.")
    rider.status = status
    await rider.save(update_fields=["status"])
    log.info(f"Rider {rider.id} is now {status.value}.")
    return rider


async def accept_assignment(tenant: str, order_id: UUID, rider_id: UUID, *, clock: Clock = utcnow) -> Order:
    """
    First-accept-wins assignment of a ready order to a rider.

    The winner is decided by a single conditional UPDATE on
    ``rider_id IS NULL AND status = ready_for_pickup``; every other caller
    gets AlreadyAssigned. The rider is claimed the same way on
    ``status = online``, so one rider never holds two orders; if that claim
    fails the whole transaction rolls back with AccessDenied.
    """
    now = clock()
    async with in_transaction() as conn:
        order = await Order.get_or_none(id=order_id, tenant=tenant).using_db(conn)
        if not order:
            raise NotFound(f"Order {order_id} not found.")
        if order.rider_id is not None:
            raise AlreadyAssigned("Order already assigned to another rider.")
        if order.status != OrderStatus.READY_FOR_PICKUP:
            raise InvalidTransition("Order is not ready for pickup.")

        rider = await get_rider(rider_id, tenant, conn=conn)
        if not await rider.zones.filter(id=order.zone_id).using_db(conn).exists():
            raise OutOfServiceArea("Order is not in your serviceable zones.")
        if not rider.is_eligible:
            raise AccessDenied("Cannot accept orders. Please complete verification and be available.")

        updated = await Order.filter(
            id=order.id,
            rider_id__isnull=True,
            status=OrderStatus.READY_FOR_PICKUP,
        ).using_db(conn).update(
            rider_id=rider.id,
            status=OrderStatus.RIDER_ASSIGNED,
            assigned_at=now,
            updated_at=now,
        )
        if not updated:
            raise AlreadyAssigned("Order already assigned to another rider.")

        # Claim the rider only while still eligible
        claimed = await Rider.filter(
            id=rider.id,
            status=RiderStatus.ONLINE,
            is_active=True,
            is_verified=True,
        ).using_db(conn).update(status=RiderStatus.BUSY, total_orders=F("total_orders") + 1)
        if not claimed:
            raise AccessDenied("Cannot accept orders. Please complete verification and be available.")

        order.rider_id = rider.id
        order.status = OrderStatus.RIDER_ASSIGNED
        order.assigned_at = now
        order.updated_at = now
        await append_history(order, OrderStatus.RIDER_ASSIGNED, HistoryActor.RIDER, f"Rider {rider.id} assigned", now, conn)
        await create_outbox_event(
            tenant=tenant,
            aggregate_type="order",
            aggregate_id=order.id,
            event_type="order.rider_assigned.v1",
            payload={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "customer_id": order.customer_id,
                "rider_id": str(rider.id),
                "rider_name": rider.name,
                "rider_phone": rider.phone,
            },
            conn=conn,
        )

    log.info(f"Order {order.order_number} accepted by rider {rider.id}.")
    return order


def _rider_actor(rider_id: UUID) -> Actor:
    return Actor(user_id=str(rider_id), role=Role.RIDER)


async def pick_up(tenant: str, order_id: UUID, rider_id: UUID, note: str = "", *, clock: Clock = utcnow) -> Order:
    return await transition(
        tenant, order_id, OrderStatus.OUT_FOR_DELIVERY, note or "Picked up", _rider_actor(rider_id), clock=clock
    )


async def complete_delivery(tenant: str, order_id: UUID, rider_id: UUID, note: str = "", *, clock: Clock = utcnow) -> Order:
    """Marks the order delivered; the rider is credited the delivery fee in the same transaction."""
    return await transition(
        tenant, order_id, OrderStatus.DELIVERED, note or "Delivered", _rider_actor(rider_id), clock=clock
    )


async def get_earnings(rider_id: UUID, tenant: str) -> dict:
    rider = await get_rider(rider_id, tenant)
    return {
        "earnings": {
            "balance": rider.balance,
            "total": rider.total_earned,
            "today": rider.today_earned,
            "this_week": rider.week_earned,
            "this_month": rider.month_earned,
        },
        "performance": {
            "total_orders": rider.total_orders,
            "completed_orders": rider.completed_orders,
            "cancelled_orders": rider.cancelled_orders,
            "rating": rider.rating,
            "rating_count": rider.rating_count,
        },
    }
