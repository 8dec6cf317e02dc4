import logging
import secrets
import string
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from tortoise.transactions import in_transaction

from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.clock import Clock, utcnow
from hyperlocal.core.config import DELIVERY_FEE, TAX_RATE
from hyperlocal.core.errors import (
    AccessDenied,
    InvalidTransition,
    NotFound,
    StoreUnavailable,
    ValidationFailed,
    OutOfServiceArea,
)
from hyperlocal.events.outbox_utility import create_outbox_event
from hyperlocal.models.order import (
    CANCELLABLE_STATUSES,
    HistoryActor,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentMethod,
)
from hyperlocal.models.rider import Rider, RiderStatus
from hyperlocal.models.store import Product, Store
from hyperlocal.services.geometry import Point
from hyperlocal.services.inventory_service import release, reserve
from hyperlocal.services.store_service import ensure_store_owner, get_store
from hyperlocal.services.zone_service import resolve_zone

log = logging.getLogger("hyperlocal.orders")

# Complete transition table. RIDER_ASSIGNED is only reachable through
# rider_service.accept_assignment, which also sets the rider.
VALID_TRANSITIONS = {
    OrderStatus.PLACED: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.RIDER_ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.RIDER_ASSIGNED: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
}

STORE_DRIVEN = frozenset({OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP})
RIDER_DRIVEN = frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED})

WHOLE = Decimal("1")
CENTS = Decimal("0.01")


def can_transition(current: OrderStatus, new_status: OrderStatus) -> bool:
    return new_status in VALID_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class Pricing:
    subtotal: Decimal
    delivery_fee: Decimal
    commission: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


def compute_pricing(
    subtotal: Decimal,
    commission_rate: Decimal,
    delivery_fee: Decimal = DELIVERY_FEE,
    tax_rate: Decimal = TAX_RATE,
    discount: Decimal = Decimal("0"),
) -> Pricing:
    """
    Customer total = subtotal + delivery fee + tax - discount.
    Commission is the platform's cut from the store and is not charged to the customer.
    Commission and tax are rounded to whole currency units.
    """
    subtotal = Decimal(subtotal)
    commission = (subtotal * Decimal(commission_rate) / 100).quantize(WHOLE, rounding=ROUND_HALF_UP)
    tax = (subtotal * Decimal(tax_rate)).quantize(WHOLE, rounding=ROUND_HALF_UP)
    total = subtotal + delivery_fee + tax - discount
    return Pricing(
        subtotal=subtotal.quantize(CENTS),
        delivery_fee=Decimal(delivery_fee).quantize(CENTS),
        commission=commission.quantize(CENTS),
        tax=tax.quantize(CENTS),
        discount=Decimal(discount).quantize(CENTS),
        total=total.quantize(CENTS),
    )


def generate_order_number(now: datetime) -> str:
    """ORD + last 8 digits of the epoch millis + 4 random characters."""
    millis = str(int(now.timestamp() * 1000))[-8:]
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"ORD{millis}{suffix}"


def _delivery_point(delivery_address: Dict[str, Any]) -> Point:
    try:
        return Point(float(delivery_address["lat"]), float(delivery_address["lng"]))
    except (KeyError, TypeError, ValueError):
        raise ValidationFailed("Delivery address needs lat and lng coordinates.")


async def create_order(
    tenant: str,
    customer_id: str,
    store_id: UUID,
    items: List[Dict],
    delivery_address: Dict[str, Any],
    payment_method: PaymentMethod,
    *,
    clock: Clock = utcnow,
) -> Order:
    """
    Places an order: validates the store and delivery point, reserves stock for
    every line and persists the order in PLACED.

    Reservations, the order row, its items, history and outbox event share one
    transaction, so any failure leaves every product's stock untouched.
    """
    if not items:
        raise ValidationFailed("Order must contain items.")
    now = clock()
    point = _delivery_point(delivery_address)

    async with in_transaction() as conn:
        store = await get_store(store_id, tenant, conn=conn)
        if not store.is_currently_open(now):
            raise StoreUnavailable(f"Store {store.name} is not accepting orders right now.")

        delivery_zone = await resolve_zone(point, tenant, conn=conn)
        if delivery_zone.id != store.zone_id:
            raise OutOfServiceArea("This store does not deliver to your location.")
        zone = delivery_zone

        product_ids = [UUID(str(it["product_id"])) for it in items]
        products = await Product.filter(id__in=product_ids, tenant=tenant).using_db(conn)
        product_map = {str(p.id): p for p in products}

        lines = []
        requested = defaultdict(int)
        subtotal = Decimal("0")
        for it in items:
            pid = str(it["product_id"])
            qty = int(it["quantity"])
            product = product_map.get(pid)

            if not product or not product.is_active:
                raise NotFound(f"Product {pid} not found or inactive.")
            if product.store_id != store.id:
                raise ValidationFailed(f"Product {pid} does not belong to this store.")
            if qty <= 0:
                raise ValidationFailed("Quantity must be at least 1.")

            line_total = product.selling_price * qty
            subtotal += line_total
            lines.append((it, product, qty, line_total))
            requested[product.id] += qty

        # One reservation per product so the per-order cap covers repeated lines.
        # Stable order so concurrent orders lock rows the same way.
        for product_id in sorted(requested, key=str):
            await reserve(product_id, requested[product_id], tenant, conn=conn)

        pricing = compute_pricing(subtotal, store.commission_rate)

        order = await Order.create(
            tenant=tenant,
            order_number=generate_order_number(now),
            customer_id=customer_id,
            store=store,
            zone=zone,
            status=OrderStatus.PLACED,
            subtotal=pricing.subtotal,
            delivery_fee=pricing.delivery_fee,
            commission=pricing.commission,
            tax=pricing.tax,
            discount=pricing.discount,
            total=pricing.total,
            delivery_address=dict(delivery_address),
            payment_method=payment_method,
            eta_min=zone.eta_min,
            eta_max=zone.eta_max,
            created_at=now,
            updated_at=now,
            using_db=conn,
        )

        for it, product, qty, line_total in lines:
            await OrderItem.create(
                order=order,
                product=product,
                quantity=qty,
                unit_price=product.selling_price,
                line_total=line_total,
                substitution_allowed=it.get("substitution_allowed", True),
                substitution_note=it.get("substitution_note"),
                using_db=conn,
            )

        await append_history(order, OrderStatus.PLACED, HistoryActor.CUSTOMER, "Order placed successfully", now, conn)

        await create_outbox_event(
            tenant=tenant,
            aggregate_type="order",
            aggregate_id=order.id,
            event_type="order.placed.v1",
            payload={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "store_id": str(store.id),
                "store_owner_id": store.owner_id,
                "customer_id": customer_id,
                "total": str(pricing.total),
            },
            conn=conn,
        )

    log.info(f"Order {order.order_number} placed by {customer_id} at store {store.id}.")
    await order.fetch_related("items", "history")
    return order


async def append_history(
    order: Order,
    status: OrderStatus,
    actor: HistoryActor,
    note: str,
    timestamp: datetime,
    conn: Any = None,
) -> OrderStatusHistory:
    sequence = await OrderStatusHistory.filter(order_id=order.id).using_db(conn).count() + 1
    return await OrderStatusHistory.create(
        order_id=order.id,
        status=status,
        actor=actor,
        note=note or "",
        timestamp=timestamp,
        sequence=sequence,
        using_db=conn,
    )


async def get_order(order_id: UUID, tenant: str, actor: Optional[Actor] = None) -> Order:
    """Fetches an order with items and history. With ``actor`` access is checked."""
    order = await Order.get_or_none(id=order_id, tenant=tenant).prefetch_related(
        "items", "items__product", "history"
    )
    if not order:
        raise NotFound(f"Order {order_id} not found.")
    if actor is not None:
        await _ensure_can_view(order, actor)
    return order


async def _ensure_can_view(order: Order, actor: Actor) -> None:
    if actor.is_privileged:
        return
    if actor.role == Role.CUSTOMER and order.customer_id == actor.user_id:
        return
    if actor.role == Role.RIDER and order.rider_id and str(order.rider_id) == actor.user_id:
        return
    if actor.role == Role.SELLER:
        store = await Store.get(id=order.store_id)
        if store.owner_id == actor.user_id:
            return
    raise AccessDenied("Access denied.")


def ensure_assigned_rider(order: Order, actor: Actor) -> None:
    if actor.is_privileged:
        return
    if actor.role != Role.RIDER or not order.rider_id or str(order.rider_id) != actor.user_id:
        raise AccessDenied("Only the assigned rider can update this order.")


def _ensure_can_cancel(order: Order, store: Store, actor: Actor) -> None:
    if actor.is_privileged:
        return
    if actor.role == Role.CUSTOMER and order.customer_id == actor.user_id:
        return
    if actor.role == Role.SELLER and store.owner_id == actor.user_id:
        return
    raise AccessDenied("Only the customer or the store can cancel this order.")


async def _load_order(order_id: UUID, tenant: str, conn) -> Order:
    order = await Order.get_or_none(id=order_id, tenant=tenant).prefetch_related("items").using_db(conn)
    if not order:
        raise NotFound(f"Order {order_id} not found.")
    return order


async def transition(
    tenant: str,
    order_id: UUID,
    new_status: OrderStatus,
    note: str,
    actor: Actor,
    *,
    clock: Clock = utcnow,
) -> Order:
    """
    Moves an order to ``new_status``, enforcing the transition table and the
    actor's rights. Appends a history entry and emits an outbox event.
    """
    now = clock()
    async with in_transaction() as conn:
        order = await _load_order(order_id, tenant, conn)
        _check_transition(order, new_status)

        store = await get_store(order.store_id, tenant, conn=conn)
        if new_status == OrderStatus.CANCELLED:
            _ensure_can_cancel(order, store, actor)
        elif new_status in STORE_DRIVEN:
            ensure_store_owner(store, actor)
        elif new_status in RIDER_DRIVEN:
            ensure_assigned_rider(order, actor)

        await apply_transition(order, new_status, note, actor.history_actor, now, conn)
    return order


async def cancel_order(
    tenant: str,
    order_id: UUID,
    reason: str,
    actor: Actor,
    *,
    clock: Clock = utcnow,
) -> Order:
    """
    Cancels an order that has not been picked up yet and restores the stock
    of every line item in the same transaction.
    """
    now = clock()
    async with in_transaction() as conn:
        order = await _load_order(order_id, tenant, conn)
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition(f"Order cannot be cancelled in status {order.status.value}.")

        store = await get_store(order.store_id, tenant, conn=conn)
        _ensure_can_cancel(order, store, actor)
        await apply_transition(order, OrderStatus.CANCELLED, reason, actor.history_actor, now, conn)
    return order


def _check_transition(order: Order, new_status: OrderStatus) -> None:
    if not can_transition(order.status, new_status):
        raise InvalidTransition(
            f"Cannot change status from {order.status.value} to {new_status.value}."
        )
    if new_status == OrderStatus.RIDER_ASSIGNED:
        raise InvalidTransition("Riders are assigned by accepting the order.")


async def apply_transition(
    order: Order,
    new_status: OrderStatus,
    note: str,
    actor: HistoryActor,
    now: datetime,
    conn: Any,
    **extra_fields,
) -> Order:
    """
    Writes the new status with a compare-and-set on the current one, then runs
    the side effects of the target state. Must run inside a transaction.
    """
    old_status = order.status
    update = {"status": new_status, "updated_at": now, **extra_fields}
    if new_status == OrderStatus.DELIVERED:
        update["actual_delivery_time"] = now
    elif new_status == OrderStatus.CANCELLED:
        update["cancelled_by"] = actor
        update["cancellation_reason"] = note
        update["cancelled_at"] = now

    updated = await Order.filter(id=order.id, status=old_status).using_db(conn).update(**update)
    if not updated:
        raise InvalidTransition(f"Order {order.id} changed while updating; retry.")
    for field, value in update.items():
        setattr(order, field, value)

    if new_status == OrderStatus.CANCELLED:
        # Compensation: give back every reserved unit
        for item in await OrderItem.filter(order_id=order.id).using_db(conn):
            await release(item.product_id, item.quantity, order.tenant, conn=conn)
    elif new_status == OrderStatus.DELIVERED and order.rider_id:
        await _credit_rider(order, conn)

    await append_history(order, new_status, actor, note, now, conn)

    event_type = f"order.status.{new_status.value}.v1"
    payload = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "old_status": old_status.value,
        "new_status": new_status.value,
    }
    if new_status == OrderStatus.CANCELLED:
        event_type = "order.cancelled.v1"
        payload["reason"] = note
    await create_outbox_event(
        tenant=order.tenant,
        aggregate_type="order",
        aggregate_id=order.id,
        event_type=event_type,
        payload=payload,
        conn=conn,
    )
    log.info(f"Order {order.order_number}: {old_status.value} -> {new_status.value} by {actor.value}.")
    return order


async def _credit_rider(order: Order, conn: Any) -> None:
    """Pays the delivery fee to the rider and frees them for the next order."""
    rider = await Rider.filter(id=order.rider_id).using_db(conn).select_for_update().first()
    if rider is None:
        log.error(f"Rider {order.rider_id} of order {order.id} no longer exists; earnings not credited.")
        return
    rider.credit(order.delivery_fee)
    rider.completed_orders += 1
    update_fields = [
        "balance", "total_earned", "today_earned", "week_earned", "month_earned", "completed_orders",
    ]
    if rider.status == RiderStatus.BUSY:
        rider.status = RiderStatus.ONLINE
        update_fields.append("status")
    await rider.save(update_fields=update_fields, using_db=conn)


async def _paginate(query, page: int, limit: int) -> Tuple[List[Order], int]:
    page = max(page, 1)
    total = await query.count()
    orders = await query.order_by("-created_at").offset((page - 1) * limit).limit(limit)
    return orders, total


async def list_customer_orders(
    tenant: str, customer_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 10
) -> Tuple[List[Order], int]:
    query = Order.filter(tenant=tenant, customer_id=customer_id)
    if status:
        query = query.filter(status=status)
    return await _paginate(query, page, limit)


async def list_store_orders(
    tenant: str, owner_id: str, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 10
) -> Tuple[List[Order], int]:
    store_ids = await Store.filter(tenant=tenant, owner_id=owner_id).values_list("id", flat=True)
    if not store_ids:
        return [], 0
    query = Order.filter(tenant=tenant, store_id__in=list(store_ids))
    if status:
        query = query.filter(status=status)
    return await _paginate(query, page, limit)


async def list_rider_orders(
    tenant: str, rider_id: UUID, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 10
) -> Tuple[List[Order], int]:
    query = Order.filter(tenant=tenant, rider_id=rider_id)
    if status:
        query = query.filter(status=status)
    return await _paginate(query, page, limit)


async def pending_rider_assignments(tenant: str, zone_id: Optional[UUID] = None) -> List[Order]:
    """Orders waiting for a rider, oldest first."""
    query = Order.filter(tenant=tenant, status=OrderStatus.READY_FOR_PICKUP, rider_id__isnull=True)
    if zone_id:
        query = query.filter(zone_id=zone_id)
    return await query.order_by("created_at")


async def submit_feedback(
    tenant: str, order_id: UUID, actor: Actor, rating: int, comment: str = ""
) -> Order:
    """Post-delivery rating by the customer. One submission per order."""
    if not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5.")
    order = await Order.get_or_none(id=order_id, tenant=tenant)
    if not order:
        raise NotFound(f"Order {order_id} not found.")
    if actor.role != Role.CUSTOMER or order.customer_id != actor.user_id:
        raise AccessDenied("Only the customer can rate this order.")
    if order.status != OrderStatus.DELIVERED:
        raise InvalidTransition("Feedback is only accepted for delivered orders.")

    updated = await Order.filter(id=order.id, feedback_rating__isnull=True).update(
        feedback_rating=rating, feedback_comment=comment
    )
    if not updated:
        raise ValidationFailed("Feedback already submitted for this order.")
    order.feedback_rating = rating
    order.feedback_comment = comment
    return order
