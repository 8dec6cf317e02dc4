import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from hyperlocal.api.deps import get_actor, get_tenant
from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.errors import AccessDenied, InvalidTransition
from hyperlocal.models.order import OrderStatus
from hyperlocal.schemas.order import (
    FeedbackRequest,
    OrderCancelRequest,
    OrderDetailResponse,
    OrderRequest,
    OrderStatusUpdate,
    OrderSummaryResponse,
)
from hyperlocal.schemas.response import Pagination, SuccessResponse
from hyperlocal.services.order_service import (
    cancel_order,
    create_order,
    get_order,
    list_customer_orders,
    list_store_orders,
    pending_rider_assignments,
    submit_feedback,
    transition,
)

router = APIRouter()
log = logging.getLogger("hyperlocal.api.orders")


def _summary_page(orders, total, page, limit):
    return SuccessResponse(
        data=[OrderSummaryResponse.from_model(o).model_dump(mode="json") for o in orders],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(
    request_data: OrderRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """
    Places a new order. Stock is reserved for every line before the order is
    stored; if any line fails nothing is reserved.
    """
    if actor.role != Role.CUSTOMER:
        raise AccessDenied("Only customers can place orders.")

    items_data = [item.model_dump() for item in request_data.items]
    order = await create_order(
        tenant=tenant,
        customer_id=actor.user_id,
        store_id=request_data.store_id,
        items=items_data,
        delivery_address=request_data.delivery_address.model_dump(),
        payment_method=request_data.payment_method,
    )
    log.info(f"Order {order.order_number} placed successfully for user {actor.user_id}.")
    return SuccessResponse(data=OrderDetailResponse.from_model(order).model_dump(mode="json"))


@router.get("/my-orders", response_model=SuccessResponse)
async def my_orders_endpoint(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    orders, total = await list_customer_orders(tenant, actor.user_id, status_filter, page, limit)
    return _summary_page(orders, total, page, limit)


@router.get("/store-orders", response_model=SuccessResponse)
async def store_orders_endpoint(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Orders across every store owned by the calling seller."""
    if actor.role != Role.SELLER:
        raise AccessDenied("Only sellers can list store orders.")
    orders, total = await list_store_orders(tenant, actor.user_id, status_filter, page, limit)
    return _summary_page(orders, total, page, limit)


@router.get("/pending-assignment", response_model=SuccessResponse)
async def pending_assignment_endpoint(
    zone_id: Optional[UUID] = None,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Ready orders still waiting for a rider, oldest first."""
    if actor.role not in (Role.RIDER, Role.ADMIN):
        raise AccessDenied("Only riders and admins can view pending assignments.")
    orders = await pending_rider_assignments(tenant, zone_id)
    return SuccessResponse(data=[OrderSummaryResponse.from_model(o).model_dump(mode="json") for o in orders])


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(
    order_id: UUID,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Fetches details for a specific order."""
    order = await get_order(order_id, tenant, actor)
    return SuccessResponse(data=OrderDetailResponse.from_model(order).model_dump(mode="json"))


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(
    order_id: UUID,
    payload: OrderStatusUpdate,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """
    Store-side progress (accepted, preparing, ready_for_pickup). Rider
    assignment and delivery go through /riders.
    """
    if payload.status == OrderStatus.CANCELLED:
        raise InvalidTransition("Use the cancel endpoint to cancel an order.")
    order = await transition(tenant, order_id, payload.status, payload.note, actor)
    return SuccessResponse(data=OrderSummaryResponse.from_model(order).model_dump(mode="json"))


@router.post("/{order_id}/cancel", response_model=SuccessResponse)
async def cancel_order_endpoint(
    order_id: UUID,
    payload: OrderCancelRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    """Cancels the order and restores stock for every line."""
    order = await cancel_order(tenant, order_id, payload.reason, actor)
    return SuccessResponse(data=OrderSummaryResponse.from_model(order).model_dump(mode="json"))


@router.post("/{order_id}/feedback", response_model=SuccessResponse)
async def feedback_endpoint(
    order_id: UUID,
    payload: FeedbackRequest,
    tenant: str = Depends(get_tenant),
    actor: Actor = Depends(get_actor),
):
    order = await submit_feedback(tenant, order_id, actor, payload.rating, payload.comment)
    return SuccessResponse(
        data={"id": str(order.id), "rating": order.feedback_rating, "comment": order.feedback_comment}
    )
