import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from hyperlocal.models.order import HistoryActor, OrderStatus, PaymentMethod, PaymentStatus


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)
    substitution_allowed: bool = True
    substitution_note: Optional[str] = None


class DeliveryAddress(BaseModel):
    street: str
    area: str
    city: str
    state: str
    pincode: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    instructions: Optional[str] = None


class OrderRequest(BaseModel):
    """Schema for the full order placement request body."""
    store_id: uuid.UUID
    items: List[OrderItemRequest]
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod


class OrderStatusUpdate(BaseModel):
    """Store-side status change. Rider-side changes go through /riders."""
    status: OrderStatus
    note: str = ""


class OrderCancelRequest(BaseModel):
    reason: str = Field(..., min_length=5)


class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class Pricing(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    commission: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    substitution_allowed: bool


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    actor: HistoryActor
    note: str
    timestamp: datetime


class OrderSummaryResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    status: OrderStatus
    store_id: uuid.UUID
    zone_id: uuid.UUID
    rider_id: Optional[uuid.UUID] = None
    total: Decimal
    created_at: datetime

    @classmethod
    def from_model(cls, order) -> "OrderSummaryResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            store_id=order.store_id,
            zone_id=order.zone_id,
            rider_id=order.rider_id,
            total=order.total,
            created_at=order.created_at,
        )


class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    id: uuid.UUID
    order_number: str
    customer_id: str
    store_id: uuid.UUID
    zone_id: uuid.UUID
    rider_id: Optional[uuid.UUID] = None
    status: OrderStatus
    pricing: Pricing
    items: List[OrderItemResponse]
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    eta_min: Optional[int] = None
    eta_max: Optional[int] = None
    status_history: List[StatusHistoryEntry] = []
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[HistoryActor] = None
    actual_delivery_time: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_model(cls, order) -> "OrderDetailResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            store_id=order.store_id,
            zone_id=order.zone_id,
            rider_id=order.rider_id,
            status=order.status,
            pricing=Pricing(
                subtotal=order.subtotal,
                delivery_fee=order.delivery_fee,
                commission=order.commission,
                tax=order.tax,
                discount=order.discount,
                total=order.total,
            ),
            items=[
                OrderItemResponse(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    line_total=i.line_total,
                    substitution_allowed=i.substitution_allowed,
                )
                for i in order.items
            ],
            delivery_address=DeliveryAddress(**order.delivery_address),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            eta_min=order.eta_min,
            eta_max=order.eta_max,
            status_history=[
                StatusHistoryEntry(status=h.status, actor=h.actor, note=h.note, timestamp=h.timestamp)
                for h in order.history
            ],
            cancellation_reason=order.cancellation_reason,
            cancelled_by=order.cancelled_by,
            actual_delivery_time=order.actual_delivery_time,
            created_at=order.created_at,
        )
