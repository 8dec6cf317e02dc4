# hyperlocal/models/__init__.py
from .zone import Zone
from .store import Store, Product, StoreCategory, ProductCategory, ProductUnit, StockStatus
from .order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    HistoryActor,
    PaymentMethod,
    PaymentStatus,
)
from .rider import Rider, RiderStatus, VehicleType
from .outbox import OutboxEvent
from .processed_event import ProcessedEvent

# Export all models
__all__ = [
    "Zone",
    "Store",
    "Product",
    "StoreCategory",
    "ProductCategory",
    "ProductUnit",
    "StockStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "HistoryActor",
    "PaymentMethod",
    "PaymentStatus",
    "Rider",
    "RiderStatus",
    "VehicleType",
    "OutboxEvent",
    "ProcessedEvent",
]
