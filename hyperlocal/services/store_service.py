import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.clock import Clock, utcnow
from hyperlocal.core.errors import AccessDenied, NotFound, ValidationFailed
from hyperlocal.models.store import Store, StoreCategory, WEEKDAYS, default_operating_hours
from hyperlocal.services.geometry import Point, haversine_distance_km
from hyperlocal.services.zone_service import get_zone

log = logging.getLogger("hyperlocal.stores")


def ensure_store_owner(store: Store, actor: Actor) -> None:
    if actor.is_privileged:
        return
    if actor.role != Role.SELLER or store.owner_id != actor.user_id:
        raise AccessDenied("Only the store owner can manage this store.")


async def get_store(store_id: UUID, tenant: str, conn=None) -> Store:
    store = await Store.get_or_none(id=store_id, tenant=tenant).using_db(conn)
    if not store:
        raise NotFound(f"Store {store_id} not found.")
    return store


async def create_store(
    tenant: str,
    actor: Actor,
    zone_id: UUID,
    name: str,
    location: Point,
    category: StoreCategory = StoreCategory.GENERAL,
    operating_hours: Optional[Dict[str, dict]] = None,
    commission_rate: Decimal = Decimal("10"),
    prep_time_minutes: int = 15,
    delivery_radius_km: float = 5,
) -> Store:
    if actor.role not in (Role.SELLER, Role.ADMIN):
        raise AccessDenied("Only sellers can register stores.")
    zone = await get_zone(zone_id, tenant)

    hours = operating_hours or default_operating_hours()
    unknown = set(hours) - set(WEEKDAYS)
    if unknown:
        raise ValidationFailed(f"Unknown weekdays in operating hours: {sorted(unknown)}")

    store = await Store.create(
        tenant=tenant,
        zone=zone,
        owner_id=actor.user_id,
        name=name,
        category=category,
        lat=location.lat,
        lng=location.lng,
        operating_hours=hours,
        commission_rate=commission_rate,
        prep_time_minutes=prep_time_minutes,
        delivery_radius_km=delivery_radius_km,
    )
    log.info(f"Store {store.id} ({name}) registered in zone {zone.code}.")
    return store


async def list_stores(
    tenant: str,
    zone_id: Optional[UUID] = None,
    near: Optional[Point] = None,
) -> List[Tuple[Store, Optional[float]]]:
    """
    Active stores, best rated first. With ``near`` only stores whose delivery
    radius reaches the point are kept, ordered by distance.
    """
    query = Store.filter(tenant=tenant, is_active=True)
    if zone_id:
        query = query.filter(zone_id=zone_id)
    stores = await query.order_by("-rating_average", "name")
    if near is None:
        return [(store, None) for store in stores]

    reachable = []
    for store in stores:
        distance = haversine_distance_km(near, store.location)
        if distance <= store.delivery_radius_km:
            reachable.append((store, round(distance, 1)))
    reachable.sort(key=lambda pair: pair[1])
    return reachable


async def set_open(store_id: UUID, tenant: str, is_open: bool, actor: Actor) -> Store:
    store = await get_store(store_id, tenant)
    ensure_store_owner(store, actor)
    store.is_open = is_open
    await store.save(update_fields=["is_open"])
    log.info(f"Store {store.id} {'opened' if is_open else 'closed'}.")
    return store


async def set_temporary_closure(
    store_id: UUID,
    tenant: str,
    actor: Actor,
    is_closed: bool,
    reason: str = "",
    until: Optional[datetime] = None,
    *,
    clock: Clock = utcnow,
) -> Store:
    store = await get_store(store_id, tenant)
    ensure_store_owner(store, actor)
    if is_closed and until is not None and until <= clock():
        raise ValidationFailed("Closure expiry must be in the future.")

    store.temp_closed = is_closed
    store.temp_closure_reason = reason if is_closed else None
    store.temp_closure_until = until if is_closed else None
    await store.save(update_fields=["temp_closed", "temp_closure_reason", "temp_closure_until"])
    return store
