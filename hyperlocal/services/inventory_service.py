"""
Inventory ledger.

Every stock change is a single conditional UPDATE on the product row, so
concurrent reservations for the same product can never oversell:

    UPDATE products SET stock = stock - q
     WHERE id = ? AND stock >= q AND max_order_quantity >= q

Pass ``conn`` to run inside the caller's transaction (order creation and
cancellation do this).
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from tortoise.expressions import F, Q

from hyperlocal.core.actor import Actor
from hyperlocal.core.errors import DomainError, InsufficientStock, NotFound, ValidationFailed
from hyperlocal.events.outbox_utility import create_outbox_event
from hyperlocal.models.store import Product, ProductCategory, ProductUnit
from hyperlocal.services.store_service import ensure_store_owner, get_store

log = logging.getLogger("hyperlocal.inventory")


async def get_product(product_id: UUID, tenant: str, conn=None) -> Product:
    product = await Product.get_or_none(id=product_id, tenant=tenant).using_db(conn)
    if not product:
        raise NotFound(f"Product {product_id} not found.")
    return product


async def reserve(product_id: UUID, quantity: int, tenant: str, conn=None) -> Product:
    """Atomically takes ``quantity`` units out of stock. Returns the updated product."""
    if quantity <= 0:
        raise ValidationFailed("Quantity must be at least 1.")

    updated = await Product.filter(
        id=product_id,
        tenant=tenant,
        stock__gte=quantity,
        max_order_quantity__gte=quantity,
    ).using_db(conn).update(stock=F("stock") - quantity)

    product = await get_product(product_id, tenant, conn=conn)
    if not updated:
        raise InsufficientStock(product_id, quantity, product.stock, product.max_order_quantity)

    log.info(f"Reserved {quantity} of product {product_id}; {product.stock} left.")
    await check_for_low_stock(product, conn=conn)
    return product


async def release(product_id: UUID, quantity: int, tenant: str, conn=None) -> None:
    """Atomically returns ``quantity`` units to stock. No upper bound is enforced."""
    if quantity <= 0:
        return
    updated = await Product.filter(id=product_id, tenant=tenant).using_db(conn).update(
        stock=F("stock") + quantity
    )
    if not updated:
        # The product row is gone; nothing left to restore into
        log.error(f"Could not restore {quantity} units: product {product_id} no longer exists.")
        return
    log.info(f"Released {quantity} of product {product_id}.")


async def check_for_low_stock(product: Product, conn=None) -> None:
    """Checks if current stock is at or below threshold and emits an alert if so."""
    if product.stock <= product.low_stock_threshold:
        log.warning(f"Low stock for product {product.id}: {product.stock} left.")
        await create_outbox_event(
            tenant=product.tenant,
            aggregate_type="product",
            aggregate_id=product.id,
            event_type="inventory.low_stock_alert.v1",
            payload={
                "product_id": str(product.id),
                "store_id": str(product.store_id),
                "stock": product.stock,
                "threshold": product.low_stock_threshold,
            },
            conn=conn,
        )


async def create_product(
    tenant: str,
    actor: Actor,
    store_id: UUID,
    name: str,
    sku: str,
    mrp: Decimal,
    selling_price: Decimal,
    stock: int = 0,
    unit: ProductUnit = ProductUnit.PIECE,
    category: ProductCategory = ProductCategory.OTHERS,
    cost_price: Optional[Decimal] = None,
    low_stock_threshold: int = 5,
    max_order_quantity: int = 10,
) -> Product:
    store = await get_store(store_id, tenant)
    ensure_store_owner(store, actor)
    if stock < 0:
        raise ValidationFailed("Stock cannot be negative.")
    if selling_price > mrp:
        raise ValidationFailed("Selling price cannot exceed MRP.")

    return await Product.create(
        tenant=tenant,
        store=store,
        name=name,
        sku=sku,
        mrp=mrp,
        selling_price=selling_price,
        cost_price=cost_price,
        stock=stock,
        unit=unit,
        category=category,
        low_stock_threshold=low_stock_threshold,
        max_order_quantity=max_order_quantity,
    )


async def update_inventory(
    product_id: UUID,
    tenant: str,
    actor: Actor,
    stock: Optional[int] = None,
    low_stock_threshold: Optional[int] = None,
    max_order_quantity: Optional[int] = None,
) -> Product:
    """Owner-side stock correction. Absolute values, not deltas."""
    product = await get_product(product_id, tenant)
    store = await get_store(product.store_id, tenant)
    ensure_store_owner(store, actor)

    update_fields = []
    if stock is not None:
        if stock < 0:
            raise ValidationFailed("Stock cannot be negative.")
        product.stock = stock
        update_fields.append("stock")
    if low_stock_threshold is not None:
        product.low_stock_threshold = low_stock_threshold
        update_fields.append("low_stock_threshold")
    if max_order_quantity is not None:
        if max_order_quantity < 1:
            raise ValidationFailed("Max order quantity must be at least 1.")
        product.max_order_quantity = max_order_quantity
        update_fields.append("max_order_quantity")

    if update_fields:
        await product.save(update_fields=update_fields + ["updated_at"])
    return product


async def bulk_update_inventory(tenant: str, actor: Actor, updates: List[Dict]) -> Dict:
    """
    Sets absolute stock for several products. Each item is applied on its own:
    a missing product or one the caller does not own is reported in
    ``errors`` while the rest still go through.
    """
    if not updates:
        raise ValidationFailed("Updates list is required.")

    results = []
    errors = []
    for item in updates:
        product_id = item.get("product_id")
        stock = item.get("stock")
        if product_id is None or stock is None:
            errors.append({"product_id": product_id, "error": "Product id and stock are required."})
            continue
        try:
            product = await update_inventory(product_id, tenant, actor, stock=stock)
        except DomainError as e:
            errors.append({"product_id": str(product_id), "error": e.message})
            continue
        results.append({
            "product_id": str(product.id),
            "name": product.name,
            "stock": product.stock,
            "stock_status": product.stock_status.value,
        })

    log.info(f"Bulk inventory update by {actor.user_id}: {len(results)} updated, {len(errors)} failed.")
    return {"updated": len(results), "failed": len(errors), "results": results, "errors": errors}


async def list_products(
    tenant: str,
    store_id: UUID,
    in_stock_only: bool = False,
    category: Optional[ProductCategory] = None,
    search: Optional[str] = None,
) -> List[Product]:
    query = Product.filter(tenant=tenant, store_id=store_id, is_active=True)
    if in_stock_only:
        query = query.filter(stock__gt=0)
    if category:
        query = query.filter(category=category)
    if search:
        query = query.filter(Q(name__icontains=search) | Q(sku__icontains=search))
    return await query.order_by("name")


async def low_stock_products(tenant: str, store_id: Optional[UUID] = None) -> List[Product]:
    """Products at or below their low-stock threshold, emptiest first."""
    query = Product.filter(tenant=tenant, is_active=True)
    if store_id:
        query = query.filter(store_id=store_id)
    products = await query.order_by("stock", "name")
    return [p for p in products if p.stock <= p.low_stock_threshold]
