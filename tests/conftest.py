from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from tortoise import Tortoise

from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.db import MODELS_MODULES
from hyperlocal.models import Product, Rider, RiderStatus, Store, Zone

TENANT = "bharatshop"

# Wednesday 12:00 in Asia/Kolkata, inside default operating hours
NOON_IST = datetime(2024, 1, 10, 6, 30, tzinfo=timezone.utc)

KORAMANGALA = [[12.925, 77.622], [12.925, 77.635], [12.935, 77.635], [12.935, 77.622]]
# Shares the eastern edge of KORAMANGALA
HSR = [[12.925, 77.635], [12.925, 77.650], [12.935, 77.650], [12.935, 77.635]]

INSIDE_KORAMANGALA = (12.930, 77.628)
INSIDE_HSR = (12.930, 77.640)


def fixed_clock(now=NOON_IST):
    return lambda: now


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": MODELS_MODULES},
        use_tz=True,
        timezone="UTC",
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def seller():
    return Actor(user_id="seller-1", role=Role.SELLER)


@pytest.fixture
def customer():
    return Actor(user_id="customer-1", role=Role.CUSTOMER)


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=Role.ADMIN)


async def make_zone(code="KOR", boundary=None, tenant=TENANT, **kwargs):
    boundary = boundary or KORAMANGALA
    lats = [p[0] for p in boundary]
    lngs = [p[1] for p in boundary]
    return await Zone.create(
        tenant=tenant,
        name=kwargs.pop("name", f"Zone {code}"),
        code=code,
        boundary=boundary,
        center_lat=(min(lats) + max(lats)) / 2,
        center_lng=(min(lngs) + max(lngs)) / 2,
        radius_km=kwargs.pop("radius_km", 3),
        **kwargs,
    )


async def make_store(zone, owner_id="seller-1", lat=12.931, lng=77.627, **kwargs):
    return await Store.create(
        tenant=zone.tenant,
        zone=zone,
        owner_id=owner_id,
        name=kwargs.pop("name", "Fresh Mart"),
        lat=lat,
        lng=lng,
        **kwargs,
    )


async def make_product(store, price="50.00", stock=20, **kwargs):
    return await Product.create(
        tenant=store.tenant,
        store=store,
        name=kwargs.pop("name", "Toor Dal 1kg"),
        sku=kwargs.pop("sku", "DAL-1"),
        mrp=Decimal(price),
        selling_price=Decimal(price),
        stock=stock,
        **kwargs,
    )


async def make_rider(zones, phone="9876543210", lat=12.930, lng=77.628, **kwargs):
    kwargs.setdefault("status", RiderStatus.ONLINE)
    kwargs.setdefault("is_verified", True)
    rider = await Rider.create(
        tenant=zones[0].tenant,
        name=kwargs.pop("name", "Ravi"),
        phone=phone,
        current_lat=lat,
        current_lng=lng,
        location_updated_at=kwargs.pop("location_updated_at", NOON_IST),
        **kwargs,
    )
    await rider.zones.add(*zones)
    return rider


def address(lat_lng=INSIDE_KORAMANGALA):
    lat, lng = lat_lng
    return {
        "street": "80 Feet Road",
        "area": "Koramangala",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560034",
        "lat": lat,
        "lng": lng,
    }
