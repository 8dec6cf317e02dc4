import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from hyperlocal.models.store import ProductCategory, ProductUnit, StockStatus, StoreCategory
from hyperlocal.schemas.zone import LatLng


class DayHours(BaseModel):
    open: str = Field("09:00", pattern=r"^\d{2}:\d{2}$")
    close: str = Field("21:00", pattern=r"^\d{2}:\d{2}$")
    is_open: bool = True


class StoreCreateRequest(BaseModel):
    zone_id: uuid.UUID
    name: str = Field(..., min_length=2)
    category: StoreCategory = StoreCategory.GENERAL
    location: LatLng
    operating_hours: Optional[Dict[str, DayHours]] = None
    commission_rate: Decimal = Field(Decimal("10"), ge=0, le=30)
    prep_time_minutes: int = Field(15, ge=5, le=120)
    delivery_radius_km: float = Field(5, ge=1, le=15)


class StoreStatusUpdate(BaseModel):
    is_open: bool


class StoreClosureUpdate(BaseModel):
    is_closed: bool
    reason: str = ""
    until: Optional[datetime] = None


class StoreResponse(BaseModel):
    id: uuid.UUID
    zone_id: uuid.UUID
    name: str
    category: StoreCategory
    location: LatLng
    is_open: bool
    is_currently_open: Optional[bool] = None
    temp_closed: bool
    temp_closure_reason: Optional[str] = None
    temp_closure_until: Optional[datetime] = None
    prep_time_minutes: int
    delivery_radius_km: float
    rating_average: float
    distance_km: Optional[float] = None

    @classmethod
    def from_model(cls, store, distance_km=None, now=None) -> "StoreResponse":
        return cls(
            id=store.id,
            zone_id=store.zone_id,
            name=store.name,
            category=store.category,
            location=LatLng(lat=store.lat, lng=store.lng),
            is_open=store.is_open,
            is_currently_open=store.is_currently_open(now) if now else None,
            temp_closed=store.temp_closed,
            temp_closure_reason=store.temp_closure_reason,
            temp_closure_until=store.temp_closure_until,
            prep_time_minutes=store.prep_time_minutes,
            delivery_radius_km=store.delivery_radius_km,
            rating_average=store.rating_average,
            distance_km=distance_km,
        )


class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    category: ProductCategory = ProductCategory.OTHERS
    unit: ProductUnit = ProductUnit.PIECE
    mrp: Decimal = Field(..., gt=0)
    selling_price: Decimal = Field(..., gt=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)
    max_order_quantity: int = Field(10, ge=1)


class InventoryUpdateRequest(BaseModel):
    stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    max_order_quantity: Optional[int] = Field(None, ge=1)


class BulkInventoryItem(BaseModel):
    product_id: uuid.UUID
    stock: int = Field(..., ge=0)


class BulkInventoryUpdateRequest(BaseModel):
    updates: List[BulkInventoryItem] = Field(..., min_length=1)


class ProductResponse(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    name: str
    sku: str
    category: ProductCategory
    unit: ProductUnit
    mrp: Decimal
    selling_price: Decimal
    stock: int
    low_stock_threshold: int
    max_order_quantity: int
    stock_status: StockStatus

    @classmethod
    def from_model(cls, product) -> "ProductResponse":
        return cls(
            id=product.id,
            store_id=product.store_id,
            name=product.name,
            sku=product.sku,
            category=product.category,
            unit=product.unit,
            mrp=product.mrp,
            selling_price=product.selling_price,
            stock=product.stock,
            low_stock_threshold=product.low_stock_threshold,
            max_order_quantity=product.max_order_quantity,
            stock_status=product.stock_status,
        )
