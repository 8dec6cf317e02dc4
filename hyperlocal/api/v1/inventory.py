import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from hyperlocal.api.deps import get_actor, get_tenant
from hyperlocal.core.actor import Actor
from hyperlocal.models.store import ProductCategory
from hyperlocal.schemas.response import SuccessResponse
from hyperlocal.schemas.store import (
    BulkInventoryUpdateRequest,
    InventoryUpdateRequest,
    ProductCreateRequest,
    ProductResponse,
)
from hyperlocal.services.inventory_service import (
    bulk_update_inventory,
    create_product,
    get_product,
    list_products,
    low_stock_products,
    update_inventory,
)

router = APIRouter()
log = logging.getLogger("hyperlocal.api.inventory")


@router.get("/low-stock", response_model=SuccessResponse)
async def low_stock_endpoint(store_id: Optional[UUID] = None, tenant: str = Depends(get_tenant)):
    """Products at or below their low-stock threshold, emptiest first."""
    products = await low_stock_products(tenant, store_id)
    return SuccessResponse(data=[ProductResponse.from_model(p).model_dump(mode="json") for p in products])


@router.get("/stores/{store_id}/products", response_model=SuccessResponse)
async def list_products_endpoint(
    store_id: UUID,
    in_stock_only: bool = False,
    category: Optional[ProductCategory] = None,
    search: Optional[str] = Query(None, min_length=1),
    tenant: str = Depends(get_tenant),
):
    products = await list_products(tenant, store_id, in_stock_only=in_stock_only, category=category, search=search)
    return SuccessResponse(data=[ProductResponse.from_model(p).model_dump(mode="json") for p in products])


@router.post("/stores/{store_id}/products", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_product_endpoint(
    store_id: UUID,
    payload: ProductCreateRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Adds a product and its initial stock to a store the caller owns."""
    product = await create_product(tenant=tenant, actor=actor, store_id=store_id, **payload.model_dump())
    log.info(f"Product {product.id} added to store {store_id}.")
    return SuccessResponse(data=ProductResponse.from_model(product).model_dump(mode="json"))


@router.post("/bulk", response_model=SuccessResponse)
async def bulk_update_endpoint(
    payload: BulkInventoryUpdateRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Sets stock for many products at once; per-item failures are listed, not raised."""
    summary = await bulk_update_inventory(tenant, actor, [u.model_dump() for u in payload.updates])
    return SuccessResponse(data=summary)


@router.get("/{product_id}", response_model=SuccessResponse)
async def get_inventory_stock(product_id: UUID, tenant: str = Depends(get_tenant)):
    """Fetches the available stock for a specific product."""
    product = await get_product(product_id, tenant)
    return SuccessResponse(data=ProductResponse.from_model(product).model_dump(mode="json"))


@router.patch("/{product_id}", response_model=SuccessResponse)
async def update_inventory_endpoint(
    product_id: UUID,
    payload: InventoryUpdateRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    product = await update_inventory(product_id, tenant, actor, **payload.model_dump())
    return SuccessResponse(data=ProductResponse.from_model(product).model_dump(mode="json"))
