from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PLACED = "placed"  # Stock reserved, waiting for the store
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"  # Waiting for a rider to accept
    RIDER_ASSIGNED = "rider_assigned"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.FAILED})

# Statuses from which an order can still be cancelled (before pickup)
CANCELLABLE_STATUSES = frozenset({
    OrderStatus.PLACED,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
})


class HistoryActor(str, Enum):
    CUSTOMER = "customer"
    STORE = "store"
    RIDER = "rider"
    SYSTEM = "system"


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"
    UPI = "upi"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Order(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    order_number = fields.CharField(max_length=32, unique=True)
    customer_id = fields.CharField(max_length=64)
    store = fields.ForeignKeyField("models.Store", related_name="orders")
    # Snapshot of the store's zone at creation time
    zone = fields.ForeignKeyField("models.Zone", related_name="orders")
    rider = fields.ForeignKeyField("models.Rider", related_name="orders", null=True)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PLACED)

    subtotal = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    delivery_fee = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    commission = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = fields.DecimalField(max_digits=14, decimal_places=2, default=0)

    delivery_address = fields.JSONField()
    payment_method = fields.CharEnumField(PaymentMethod)
    payment_status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.PENDING)
    eta_min = fields.IntField(null=True)  # minutes
    eta_max = fields.IntField(null=True)  # minutes

    assigned_at = fields.DatetimeField(null=True)
    actual_delivery_time = fields.DatetimeField(null=True)

    cancelled_by = fields.CharEnumField(HistoryActor, null=True)
    cancellation_reason = fields.CharField(max_length=500, null=True)
    cancelled_at = fields.DatetimeField(null=True)

    feedback_rating = fields.IntField(null=True)
    feedback_comment = fields.TextField(null=True)

    created_at = fields.DatetimeField()
    updated_at = fields.DatetimeField()

    class Meta:
        table = "orders"
        indexes = [
            ("tenant", "customer_id", "created_at"),  # Customer order history
            ("store_id", "status", "created_at"),     # Store dashboards
            ("rider_id", "status"),                   # Rider order list
            ("zone_id", "status"),                    # Pending rider assignments
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OrderItem(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items")
    product = fields.ForeignKeyField("models.Product", related_name="order_items")
    quantity = fields.IntField()
    unit_price = fields.DecimalField(max_digits=12, decimal_places=2)
    line_total = fields.DecimalField(max_digits=14, decimal_places=2)
    substitution_allowed = fields.BooleanField(default=True)
    substitution_note = fields.CharField(max_length=255, null=True)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),
            ("product_id",),
        ]


class OrderStatusHistory(models.Model):
    """Append-only audit trail. Rows are only ever created, never updated."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="history")
    status = fields.CharEnumField(OrderStatus)
    actor = fields.CharEnumField(HistoryActor)
    note = fields.CharField(max_length=500, default="")
    timestamp = fields.DatetimeField()
    # Insertion order within one order; timestamps from a frozen clock can tie
    sequence = fields.IntField()

    class Meta:
        table = "order_status_history"
        unique_together = (("order", "sequence"),)
        ordering = ["sequence"]
