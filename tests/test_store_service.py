from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import HSR, NOON_IST, TENANT, fixed_clock, make_store, make_zone
from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.errors import AccessDenied, NotFound, ValidationFailed
from hyperlocal.models import Store, StoreCategory
from hyperlocal.services.geometry import Point
from hyperlocal.services.store_service import (
    create_store,
    list_stores,
    set_open,
    set_temporary_closure,
)

CLOCK = fixed_clock()


class TestCreateStore:
    async def test_seller_registers_store(self, db, seller):
        zone = await make_zone()
        store = await create_store(
            TENANT, seller, zone.id, "Fresh Mart", Point(12.931, 77.627),
            category=StoreCategory.KIRANA, commission_rate=Decimal("12"),
        )
        assert store.owner_id == seller.user_id
        assert store.zone_id == zone.id
        assert store.operating_hours["sunday"]["is_open"] is False
        assert store.is_currently_open(NOON_IST)

    async def test_customer_cannot_register_store(self, db, customer):
        zone = await make_zone()
        with pytest.raises(AccessDenied):
            await create_store(TENANT, customer, zone.id, "Fresh Mart", Point(12.931, 77.627))

    async def test_unknown_weekday_rejected(self, db, seller):
        zone = await make_zone()
        hours = {"funday": {"open": "09:00", "close": "21:00", "is_open": True}}
        with pytest.raises(ValidationFailed):
            await create_store(TENANT, seller, zone.id, "Fresh Mart", Point(12.931, 77.627), operating_hours=hours)
        assert await Store.all().count() == 0

    async def test_zone_of_another_tenant(self, db, seller):
        zone = await make_zone(tenant="othershop")
        with pytest.raises(NotFound):
            await create_store(TENANT, seller, zone.id, "Fresh Mart", Point(12.931, 77.627))


class TestListStores:
    async def test_best_rated_first_without_location(self, db):
        zone = await make_zone()
        await make_store(zone, name="Alpha", rating_average=3.9)
        await make_store(zone, name="Beta", rating_average=4.6)
        await make_store(zone, name="Gone", rating_average=5.0, is_active=False)

        stores = await list_stores(TENANT)
        assert [(s.name, d) for s, d in stores] == [("Beta", None), ("Alpha", None)]

    async def test_radius_filter_and_distance_order(self, db):
        zone = await make_zone()
        await make_store(zone, name="Mid", lat=12.950, lng=77.628, rating_average=5.0)
        await make_store(zone, name="Near", lat=12.931, lng=77.627, rating_average=1.0)
        await make_store(zone, name="Far", lat=13.000, lng=77.628, rating_average=5.0)
        await make_store(zone, name="Wide", lat=13.000, lng=77.628, delivery_radius_km=10)

        stores = await list_stores(TENANT, near=Point(12.930, 77.628))
        assert [s.name for s, _ in stores] == ["Near", "Mid", "Wide"]
        distances = [d for _, d in stores]
        assert distances == sorted(distances)
        assert distances[1] == pytest.approx(2.2, abs=0.1)

    async def test_zone_filter(self, db):
        kor = await make_zone("KOR")
        hsr = await make_zone("HSR", HSR)
        await make_store(kor, name="Koramangala Mart")
        await make_store(hsr, name="HSR Mart", lat=12.930, lng=77.640)

        stores = await list_stores(TENANT, zone_id=hsr.id)
        assert [s.name for s, _ in stores] == ["HSR Mart"]


class TestStoreStatus:
    async def test_owner_closes_and_reopens(self, db, seller):
        store = await make_store(await make_zone(), owner_id=seller.user_id)

        store = await set_open(store.id, TENANT, False, seller)
        assert not (await Store.get(id=store.id)).is_open
        assert not store.is_currently_open(NOON_IST)

        await set_open(store.id, TENANT, True, seller)
        assert (await Store.get(id=store.id)).is_open

    async def test_other_seller_cannot_close(self, db):
        store = await make_store(await make_zone(), owner_id="seller-1")
        with pytest.raises(AccessDenied):
            await set_open(store.id, TENANT, False, Actor(user_id="seller-2", role=Role.SELLER))

    async def test_admin_can_close_any_store(self, db, admin):
        store = await make_store(await make_zone())
        store = await set_open(store.id, TENANT, False, admin)
        assert store.is_open is False


class TestTemporaryClosure:
    async def test_closure_until_a_future_time(self, db, seller):
        store = await make_store(await make_zone(), owner_id=seller.user_id)
        until = NOON_IST + timedelta(hours=2)

        store = await set_temporary_closure(store.id, TENANT, seller, True, "Stock taking", until, clock=CLOCK)
        stored = await Store.get(id=store.id)
        assert stored.temp_closed
        assert stored.temp_closure_reason == "Stock taking"
        assert stored.temp_closure_until == until
        assert not stored.is_currently_open(NOON_IST)
        assert stored.is_currently_open(until + timedelta(minutes=1))

    async def test_expiry_in_the_past_rejected(self, db, seller):
        store = await make_store(await make_zone(), owner_id=seller.user_id)
        with pytest.raises(ValidationFailed):
            await set_temporary_closure(
                store.id, TENANT, seller, True, "Too late", NOON_IST - timedelta(minutes=1), clock=CLOCK
            )
        assert not (await Store.get(id=store.id)).temp_closed

    async def test_lifting_closure_clears_details(self, db, seller):
        store = await make_store(await make_zone(), owner_id=seller.user_id)
        await set_temporary_closure(store.id, TENANT, seller, True, "Festival", clock=CLOCK)

        store = await set_temporary_closure(store.id, TENANT, seller, False, clock=CLOCK)
        stored = await Store.get(id=store.id)
        assert not stored.temp_closed
        assert stored.temp_closure_reason is None
        assert stored.temp_closure_until is None

    async def test_other_seller_cannot_close_temporarily(self, db):
        store = await make_store(await make_zone(), owner_id="seller-1")
        intruder = Actor(user_id="seller-2", role=Role.SELLER)
        with pytest.raises(AccessDenied):
            await set_temporary_closure(store.id, TENANT, intruder, True, "Nope", clock=CLOCK)
