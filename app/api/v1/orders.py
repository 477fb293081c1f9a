import uuid
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import (
    get_order_service, require_consumer, require_supplier_staff
)
from app.models.auth import Actor
from app.models.order import OrderCreate, OrderPage, OrderRead
from app.services.order import OrderService

router = APIRouter()


def _page(orders, total: int, page: int, page_size: int) -> OrderPage:
    return OrderPage(
        data=[OrderRead.model_validate(order) for order in orders],
        page=page,
        page_size=page_size,
        total=total
    )

# ==============================================================================
# CONSUMER SCOPE
# ==============================================================================


@router.post(
    "/consumer/orders",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
    summary="Place Order",
    description="Creates a pending order with one supplier. Prices are taken from the live catalog."
)
def create_order(
    data: OrderCreate,
    actor: Actor = Depends(require_consumer),
    service: OrderService = Depends(get_order_service)
):
    order = service.create_order(actor.user_id, data.supplier_id, data.items)
    return OrderRead.model_validate(order)


@router.get(
    "/consumer/orders",
    response_model=OrderPage,
    summary="List My Orders"
)
def list_consumer_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_consumer),
    service: OrderService = Depends(get_order_service)
):
    orders, total = service.list_consumer_orders(
        actor.user_id, page, page_size)
    return _page(orders, total, page, page_size)


@router.get(
    "/consumer/orders/current",
    response_model=OrderPage,
    summary="List Current Orders",
    description="Orders still pending or accepted."
)
def list_current_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_consumer),
    service: OrderService = Depends(get_order_service)
):
    orders, total = service.list_consumer_orders(
        actor.user_id, page, page_size, current_only=True)
    return _page(orders, total, page, page_size)


@router.get(
    "/consumer/orders/{order_id}",
    response_model=OrderRead,
    summary="Get Order"
)
def get_consumer_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_consumer),
    service: OrderService = Depends(get_order_service)
):
    order = service.get_order(order_id, actor)
    return OrderRead.model_validate(order)


@router.post(
    "/consumer/orders/{order_id}/cancel",
    response_model=OrderRead,
    summary="Cancel Order",
    description="Only pending orders can be cancelled."
)
def cancel_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_consumer),
    service: OrderService = Depends(get_order_service)
):
    order = service.cancel_order(order_id, actor.user_id)
    return OrderRead.model_validate(order)


# ==============================================================================
# SUPPLIER SCOPE
# ==============================================================================

@router.get(
    "/supplier/orders",
    response_model=OrderPage,
    summary="List Incoming Orders"
)
def list_supplier_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_supplier_staff),
    service: OrderService = Depends(get_order_service)
):
    orders, total = service.list_supplier_orders(
        actor.supplier_id, page, page_size)
    return _page(orders, total, page, page_size)


@router.get(
    "/supplier/orders/{order_id}",
    response_model=OrderRead,
    summary="Get Incoming Order"
)
def get_supplier_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_supplier_staff),
    service: OrderService = Depends(get_order_service)
):
    order = service.get_order(order_id, actor)
    return OrderRead.model_validate(order)


@router.post(
    "/supplier/orders/{order_id}/accept",
    response_model=OrderRead,
    summary="Accept Order",
    description="Reserves stock for every line. Fails without side effects if any line is short."
)
def accept_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_supplier_staff),
    service: OrderService = Depends(get_order_service)
):
    order = service.accept_order(order_id, actor.supplier_id)
    return OrderRead.model_validate(order)


@router.post(
    "/supplier/orders/{order_id}/reject",
    response_model=OrderRead,
    summary="Reject Order"
)
def reject_order(
    order_id: uuid.UUID,
    actor: Actor = Depends(require_supplier_staff),
    service: OrderService = Depends(get_order_service)
):
    order = service.reject_order(order_id, actor.supplier_id)
    return OrderRead.model_validate(order)
