import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient
from types import SimpleNamespace
from unittest.mock import patch, AsyncMock
from uuid import uuid4

from hyperlocal.core.errors import AlreadyAssigned, InvalidTransition, NotFound, OutOfServiceArea
from hyperlocal.main import app
from hyperlocal.models import (
    HistoryActor,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RiderStatus,
    StoreCategory,
    VehicleType,
)

CUSTOMER = {"X-User-Id": "customer-1", "X-User-Role": "customer"}
SELLER = {"X-User-Id": "seller-1", "X-User-Role": "seller"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
NOW = datetime(2024, 1, 10, 6, 30, tzinfo=timezone.utc)


@pytest.fixture
def client():
    return TestClient(app)


def fake_order(status=OrderStatus.PLACED, rider_id=None):
    return SimpleNamespace(
        id=uuid4(),
        order_number="ORD12345678AB12",
        customer_id="customer-1",
        store_id=uuid4(),
        zone_id=uuid4(),
        rider_id=rider_id,
        status=status,
        subtotal=Decimal("100.00"),
        delivery_fee=Decimal("30.00"),
        commission=Decimal("10.00"),
        tax=Decimal("5.00"),
        discount=Decimal("0.00"),
        total=Decimal("135.00"),
        items=[SimpleNamespace(
            product_id=uuid4(), quantity=2, unit_price=Decimal("50.00"),
            line_total=Decimal("100.00"), substitution_allowed=True,
        )],
        delivery_address={
            "street": "80 Feet Road", "area": "Koramangala", "city": "Bengaluru",
            "state": "Karnataka", "pincode": "560034", "lat": 12.93, "lng": 77.628,
        },
        payment_method=PaymentMethod.COD,
        payment_status=PaymentStatus.PENDING,
        eta_min=15,
        eta_max=45,
        history=[SimpleNamespace(status=OrderStatus.PLACED, actor=HistoryActor.CUSTOMER, note="", timestamp=NOW)],
        cancellation_reason=None,
        cancelled_by=None,
        actual_delivery_time=None,
        created_at=NOW,
    )


def fake_zone():
    return SimpleNamespace(
        id=uuid4(), name="Koramangala", code="KOR",
        boundary=[[12.925, 77.622], [12.925, 77.635], [12.935, 77.635], [12.935, 77.622]],
        center_lat=12.93, center_lng=77.6285, radius_km=3.0, eta_min=15, eta_max=45, is_active=True,
    )


def fake_store(zone_id):
    store = SimpleNamespace(
        id=uuid4(), zone_id=zone_id, name="Fresh Mart", category=StoreCategory.KIRANA,
        lat=12.931, lng=77.627, is_open=True, temp_closed=False, temp_closure_reason=None,
        temp_closure_until=None, prep_time_minutes=15, delivery_radius_km=5.0, rating_average=4.2,
    )
    store.is_currently_open = lambda now: True
    return store


def fake_rider(rider_id):
    return SimpleNamespace(
        id=rider_id, name="Suresh", phone="9123456780", vehicle_type=VehicleType.BIKE,
        status=RiderStatus.OFFLINE, is_verified=False, is_active=True, location=None, location_updated_at=None,
    )


def rider_payload(**extra):
    return {
        "name": "Suresh",
        "phone": "9123456780",
        "vehicle_type": "bike",
        "vehicle_number": "KA01AB1234",
        "zone_ids": [str(uuid4())],
        **extra,
    }


def order_payload(quantity=2):
    return {
        "store_id": str(uuid4()),
        "items": [{"product_id": str(uuid4()), "quantity": quantity}],
        "delivery_address": {
            "street": "80 Feet Road", "area": "Koramangala", "city": "Bengaluru",
            "state": "Karnataka", "pincode": "560034", "lat": 12.93, "lng": 77.628,
        },
        "payment_method": "cod",
    }


class TestOrderRoutes:
    def test_create_order_success(self, client):
        """Test order creation returns 201 with the priced order"""
        with patch('hyperlocal.api.v1.orders.create_order', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = fake_order()

            response = client.post("/api/v1/orders/", json=order_payload(), headers=CUSTOMER)
            assert response.status_code == 201
            body = response.json()
            assert body["success"] is True
            assert body["data"]["status"] == "placed"
            assert body["data"]["pricing"]["total"] == "135.00"
            assert mock_create.call_args.kwargs["customer_id"] == "customer-1"

    def test_create_order_requires_identity(self, client):
        response = client.post("/api/v1/orders/", json=order_payload())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_create_order_rejects_non_customer(self, client):
        response = client.post("/api/v1/orders/", json=order_payload(), headers=SELLER)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "access_denied"

    def test_create_order_invalid_quantity(self, client):
        response = client.post("/api/v1/orders/", json=order_payload(quantity=0), headers=CUSTOMER)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_get_order_not_found(self, client):
        with patch('hyperlocal.api.v1.orders.get_order', new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = NotFound("Order not found.")
            response = client.get(f"/api/v1/orders/{uuid4()}", headers=CUSTOMER)
            assert response.status_code == 404
            assert response.json()["error"]["code"] == "not_found"

    def test_get_order_passes_tenant(self, client):
        with patch('hyperlocal.api.v1.orders.get_order', new_callable=AsyncMock) as mock_get:
            mock_get.return_value = fake_order()
            headers = {**CUSTOMER, "X-Tenant-Domain": "othershop"}
            response = client.get(f"/api/v1/orders/{uuid4()}", headers=headers)
            assert response.status_code == 200
            assert mock_get.call_args.args[1] == "othershop"

    def test_invalid_transition_maps_to_conflict(self, client):
        with patch('hyperlocal.api.v1.orders.transition', new_callable=AsyncMock) as mock_transition:
            mock_transition.side_effect = InvalidTransition("Cannot change status from placed to preparing.")
            response = client.patch(
                f"/api/v1/orders/{uuid4()}/status", json={"status": "preparing"}, headers=SELLER
            )
            assert response.status_code == 409
            assert response.json()["error"]["code"] == "invalid_transition"

    def test_status_endpoint_does_not_cancel(self, client):
        response = client.patch(f"/api/v1/orders/{uuid4()}/status", json={"status": "cancelled"}, headers=SELLER)
        assert response.status_code == 409

    def test_cancel_order(self, client):
        with patch('hyperlocal.api.v1.orders.cancel_order', new_callable=AsyncMock) as mock_cancel:
            mock_cancel.return_value = fake_order(status=OrderStatus.CANCELLED)
            response = client.post(
                f"/api/v1/orders/{uuid4()}/cancel", json={"reason": "Ordered by mistake"}, headers=CUSTOMER
            )
            assert response.status_code == 200
            assert response.json()["data"]["status"] == "cancelled"

    def test_my_orders_paginated(self, client):
        with patch('hyperlocal.api.v1.orders.list_customer_orders', new_callable=AsyncMock) as mock_list:
            mock_list.return_value = ([fake_order()], 11)
            response = client.get("/api/v1/orders/my-orders?page=2&limit=5", headers=CUSTOMER)
            assert response.status_code == 200
            assert response.json()["pagination"] == {"page": 2, "limit": 5, "total": 11, "pages": 3}


class TestZoneRoutes:
    def test_check_serviceability(self, client):
        zone = fake_zone()
        with patch('hyperlocal.api.v1.zones.check_serviceability', new_callable=AsyncMock) as mock_check:
            mock_check.return_value = (zone, [fake_store(zone.id)])
            response = client.post("/api/v1/zones/check", json={"lat": 12.93, "lng": 77.628})
            assert response.status_code == 200
            data = response.json()["data"]
            assert data["zone"]["code"] == "KOR"
            assert len(data["stores"]) == 1

    def test_unserviceable_location(self, client):
        with patch('hyperlocal.api.v1.zones.check_serviceability', new_callable=AsyncMock) as mock_check:
            mock_check.side_effect = OutOfServiceArea("Location is not serviceable.")
            response = client.post("/api/v1/zones/check", json={"lat": 13.0, "lng": 77.0})
            assert response.status_code == 422
            assert response.json()["error"]["code"] == "out_of_service_area"

    def test_only_admin_creates_zones(self, client):
        payload = {"name": "Koramangala", "code": "KOR", "boundary": fake_zone().boundary, "radius_km": 3}
        response = client.post("/api/v1/zones/", json=payload, headers=SELLER)
        assert response.status_code == 403


class TestRiderRoutes:
    def test_rider_acts_only_on_own_profile(self, client):
        headers = {"X-User-Id": str(uuid4()), "X-User-Role": "rider"}
        response = client.post(f"/api/v1/riders/{uuid4()}/orders/{uuid4()}/accept", headers=headers)
        assert response.status_code == 403

    def test_lost_race_is_conflict(self, client):
        rider_id = uuid4()
        headers = {"X-User-Id": str(rider_id), "X-User-Role": "rider"}
        with patch('hyperlocal.api.v1.riders.accept_assignment', new_callable=AsyncMock) as mock_accept:
            mock_accept.side_effect = AlreadyAssigned("Order already assigned to another rider.")
            response = client.post(f"/api/v1/riders/{rider_id}/orders/{uuid4()}/accept", headers=headers)
            assert response.status_code == 409
            assert response.json()["error"]["code"] == "already_assigned"

    def test_delivery_status_routes_to_pick_up(self, client):
        rider_id = uuid4()
        headers = {"X-User-Id": str(rider_id), "X-User-Role": "rider"}
        with patch('hyperlocal.api.v1.riders.pick_up', new_callable=AsyncMock) as mock_pick_up:
            mock_pick_up.return_value = fake_order(status=OrderStatus.OUT_FOR_DELIVERY, rider_id=rider_id)
            response = client.put(
                f"/api/v1/riders/{rider_id}/orders/{uuid4()}/status", json={"status": "picked_up"}, headers=headers
            )
            assert response.status_code == 200
            assert response.json()["data"]["status"] == "out_for_delivery"

    def test_system_role_cannot_be_claimed(self, client):
        headers = {"X-User-Id": "x", "X-User-Role": "system"}
        response = client.get(f"/api/v1/riders/{uuid4()}/earnings", headers=headers)
        assert response.status_code == 403

    def test_rider_registers_under_own_user_id(self, client):
        rider_id = uuid4()
        headers = {"X-User-Id": str(rider_id), "X-User-Role": "rider"}
        with patch('hyperlocal.api.v1.riders.register_rider', new_callable=AsyncMock) as mock_register:
            mock_register.return_value = fake_rider(rider_id)
            response = client.post("/api/v1/riders/", json=rider_payload(), headers=headers)
            assert response.status_code == 201
            assert mock_register.call_args.kwargs["rider_id"] == rider_id
            assert response.json()["data"]["id"] == str(rider_id)

    def test_admin_registers_rider_for_named_user(self, client):
        user_id = uuid4()
        with patch('hyperlocal.api.v1.riders.register_rider', new_callable=AsyncMock) as mock_register:
            mock_register.return_value = fake_rider(user_id)
            response = client.post("/api/v1/riders/", json=rider_payload(user_id=str(user_id)), headers=ADMIN)
            assert response.status_code == 201
            assert mock_register.call_args.kwargs["rider_id"] == user_id

    def test_admin_registration_needs_user_id(self, client):
        response = client.post("/api/v1/riders/", json=rider_payload(), headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_failed"

    def test_rider_user_id_must_be_uuid(self, client):
        headers = {"X-User-Id": "rider-1", "X-User-Role": "rider"}
        response = client.post("/api/v1/riders/", json=rider_payload(), headers=headers)
        assert response.status_code == 400


class TestInventoryRoutes:
    def test_bulk_update_returns_summary(self, client):
        product_id = uuid4()
        summary = {"updated": 1, "failed": 0, "results": [{"product_id": str(product_id), "stock": 12}], "errors": []}
        with patch('hyperlocal.api.v1.inventory.bulk_update_inventory', new_callable=AsyncMock) as mock_bulk:
            mock_bulk.return_value = summary
            response = client.post(
                "/api/v1/inventory/bulk",
                json={"updates": [{"product_id": str(product_id), "stock": 12}]},
                headers=SELLER,
            )
            assert response.status_code == 200
            assert response.json()["data"]["updated"] == 1
            updates = mock_bulk.call_args.args[2]
            assert updates == [{"product_id": product_id, "stock": 12}]

    def test_bulk_update_needs_items(self, client):
        response = client.post("/api/v1/inventory/bulk", json={"updates": []}, headers=SELLER)
        assert response.status_code == 422

    def test_product_filters_are_forwarded(self, client):
        store_id = uuid4()
        with patch('hyperlocal.api.v1.inventory.list_products', new_callable=AsyncMock) as mock_list:
            mock_list.return_value = []
            response = client.get(f"/api/v1/inventory/stores/{store_id}/products?category=dairy&search=milk")
            assert response.status_code == 200
            assert mock_list.call_args.kwargs["category"] == "dairy"
            assert mock_list.call_args.kwargs["search"] == "milk"
