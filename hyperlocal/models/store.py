from datetime import datetime
from decimal import Decimal
from enum import Enum
from tortoise import fields, models
from zoneinfo import ZoneInfo
import uuid

from hyperlocal.core.config import MARKET_TIMEZONE
from hyperlocal.services.geometry import Point

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class StoreCategory(str, Enum):
    KIRANA = "kirana"
    PHARMACY = "pharmacy"
    GENERAL = "general"
    RESTAURANT = "restaurant"
    HOSPITALITY = "hospitality"
    SERVICES = "services"


class ProductCategory(str, Enum):
    GROCERIES = "groceries"
    DAIRY = "dairy"
    BEVERAGES = "beverages"
    SNACKS = "snacks"
    PERSONAL_CARE = "personal-care"
    HOUSEHOLD = "household"
    PHARMACY = "pharmacy"
    OTHERS = "others"


class ProductUnit(str, Enum):
    PIECE = "piece"
    KG = "kg"
    G = "g"
    ML = "ml"
    L = "l"
    PACK = "pack"


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def default_operating_hours():
    """09:00-21:00 every day except Sunday."""
    return {
        day: {"open": "09:00", "close": "21:00", "is_open": day != "sunday"}
        for day in WEEKDAYS
    }


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


class Store(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    zone = fields.ForeignKeyField("models.Zone", related_name="stores")
    owner_id = fields.CharField(max_length=64)
    name = fields.CharField(max_length=255)
    category = fields.CharEnumField(StoreCategory, default=StoreCategory.GENERAL)
    lat = fields.FloatField()
    lng = fields.FloatField()
    operating_hours = fields.JSONField(default=default_operating_hours)
    is_active = fields.BooleanField(default=True)
    is_open = fields.BooleanField(default=True)
    temp_closed = fields.BooleanField(default=False)
    temp_closure_reason = fields.CharField(max_length=255, null=True)
    temp_closure_until = fields.DatetimeField(null=True)
    commission_rate = fields.DecimalField(max_digits=5, decimal_places=2, default=Decimal("10"))  # percent
    prep_time_minutes = fields.IntField(default=15)
    delivery_radius_km = fields.FloatField(default=5)
    rating_average = fields.FloatField(default=0)
    rating_count = fields.IntField(default=0)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "stores"
        indexes = [
            ("zone_id", "is_active", "is_open"),  # Serviceable stores per zone
            ("tenant", "owner_id"),
        ]

    @property
    def location(self) -> Point:
        return Point(self.lat, self.lng)

    def is_temporarily_closed(self, now: datetime) -> bool:
        if not self.temp_closed:
            return False
        # A closure without an expiry lasts until the owner lifts it
        return self.temp_closure_until is None or self.temp_closure_until > now

    def is_currently_open(self, now: datetime) -> bool:
        if self.is_temporarily_closed(now):
            return False
        if not self.is_open or not self.is_active:
            return False

        local = now.astimezone(ZoneInfo(MARKET_TIMEZONE))
        today = (self.operating_hours or {}).get(WEEKDAYS[local.weekday()])
        if not today or not today.get("is_open"):
            return False

        current = local.hour * 60 + local.minute
        return _minutes(today["open"]) <= current <= _minutes(today["close"])


class Product(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    store = fields.ForeignKeyField("models.Store", related_name="products")
    name = fields.CharField(max_length=255)
    sku = fields.CharField(max_length=64)
    category = fields.CharEnumField(ProductCategory, default=ProductCategory.OTHERS)
    unit = fields.CharEnumField(ProductUnit, default=ProductUnit.PIECE)
    mrp = fields.DecimalField(max_digits=12, decimal_places=2)
    selling_price = fields.DecimalField(max_digits=12, decimal_places=2)
    cost_price = fields.DecimalField(max_digits=12, decimal_places=2, null=True)
    stock = fields.IntField(default=0)
    low_stock_threshold = fields.IntField(default=5)
    max_order_quantity = fields.IntField(default=10)
    is_active = fields.BooleanField(default=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "products"
        indexes = [
            ("store_id", "is_active"),
            ("tenant", "store_id"),
        ]

    @property
    def stock_status(self) -> StockStatus:
        if self.stock == 0:
            return StockStatus.OUT_OF_STOCK
        if self.stock <= self.low_stock_threshold:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    def can_order_quantity(self, quantity: int) -> bool:
        return self.stock >= quantity and quantity <= self.max_order_quantity
