from typing import List, Optional, Tuple
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from loguru import logger
from sqlmodel import Session

from app.core.config import settings
from app.core.exceptions import (
    OrderNotFound, ProductNotFound, ProductSupplierMismatch,
    BelowMinimumOrderQuantity, EmptyOrderTotal,
    InsufficientStockError, InvalidTransitionError, UnauthorizedError
)
from app.db.gateway import PersistenceGateway
from app.db.schema import Order, OrderItem, OrderStatus
from app.models.auth import Actor
from app.models.order import OrderItemCreate, OrderRead
from app.models.realtime import Envelope
from app.realtime.hub import Hub, hub as default_hub

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

CURRENT_ORDER_STATUSES = [OrderStatus.PENDING, OrderStatus.ACCEPTED]


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def discounted_price(price: Decimal, discount: Optional[Decimal]) -> Decimal:
    """List price with the percentage discount applied, rounded to cents."""
    if not discount:
        return to_cents(price)
    return to_cents(price * (1 - discount / HUNDRED))


class OrderService:
    def __init__(self, session: Session, hub: Optional[Hub] = None):
        self.session = session
        self.gateway = PersistenceGateway(session)
        self.hub = hub or default_hub

    # ==========================================================================
    # CREATE
    # ==========================================================================

    def create_order(self, consumer_id: UUID, supplier_id: UUID, items: List[OrderItemCreate]) -> Order:
        """
        Validates every line against the live catalog and persists the order
        as pending. Stock is only checked here; it is reserved on acceptance.
        """
        lines: List[OrderItem] = []
        subtotal = Decimal("0")

        for item in items:
            product = self.gateway.get_product_by_id(item.product_id)
            if not product:
                raise ProductNotFound(f"Product {item.product_id} not found")

            if product.supplier_id != supplier_id:
                raise ProductSupplierMismatch(
                    f"Product {product.name} does not belong to this supplier")

            if item.quantity < product.min_order_quantity:
                raise BelowMinimumOrderQuantity(
                    f"Minimum order quantity for {product.name} is {product.min_order_quantity}")

            if product.stock_level < item.quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}: "
                    f"{product.stock_level} available, {item.quantity} requested")

            unit_price = discounted_price(product.price, product.discount)
            line_total = to_cents(unit_price * item.quantity)
            subtotal += line_total

            lines.append(OrderItem(
                product_id=product.id,
                quantity=item.quantity,
                unit_price=unit_price,
                subtotal=line_total
            ))

        if subtotal <= 0:
            raise EmptyOrderTotal("Order total must be greater than zero")

        tax = to_cents(subtotal * settings.order_tax_rate)
        shipping_fee = to_cents(settings.order_shipping_fee)

        order = Order(
            consumer_id=consumer_id,
            supplier_id=supplier_id,
            status=OrderStatus.PENDING,
            subtotal=subtotal,
            tax=tax,
            shipping_fee=shipping_fee,
            total=subtotal + tax + shipping_fee
        )
        order = self.gateway.create_order_transactional(order, lines)

        logger.info(
            f"Order {order.id} created by consumer {consumer_id} for supplier {supplier_id} (total {order.total})")
        self._notify_supplier(order, "order_created")
        return order

    # ==========================================================================
    # TRANSITIONS
    # ==========================================================================

    def accept_order(self, order_id: UUID, acting_supplier_id: UUID) -> Order:
        """
        Reserves stock for every line and moves the order to accepted.
        Decrements and the status change commit together or not at all.
        """
        order = self._get_supplier_order(order_id, acting_supplier_id)
        self._ensure_pending(order)

        with self.gateway.transaction():
            if not self.gateway.update_order_status(order.id, OrderStatus.PENDING, OrderStatus.ACCEPTED):
                raise InvalidTransitionError(
                    f"Order {order.id} is no longer pending")

            for item in order.items:
                if not self.gateway.conditional_decrement_stock(item.product_id, item.quantity):
                    raise InsufficientStockError(
                        f"Insufficient stock for product {item.product_id}")

        order = self.gateway.get_order(order_id)
        logger.info(f"Order {order.id} accepted by supplier {acting_supplier_id}")
        self._notify_consumer(order, "order_accepted")
        return order

    def reject_order(self, order_id: UUID, acting_supplier_id: UUID) -> Order:
        order = self._get_supplier_order(order_id, acting_supplier_id)
        order = self._transition(order, OrderStatus.REJECTED)

        logger.info(f"Order {order.id} rejected by supplier {acting_supplier_id}")
        self._notify_consumer(order, "order_rejected")
        return order

    def cancel_order(self, order_id: UUID, acting_consumer_id: UUID) -> Order:
        order = self.gateway.get_order(order_id)
        if not order:
            raise OrderNotFound()
        if order.consumer_id != acting_consumer_id:
            raise UnauthorizedError("Order belongs to another consumer")

        order = self._transition(order, OrderStatus.CANCELLED)

        logger.info(f"Order {order.id} cancelled by consumer {acting_consumer_id}")
        self._notify_supplier(order, "order_cancelled")
        return order

    def _transition(self, order: Order, to_status: OrderStatus) -> Order:
        self._ensure_pending(order)

        with self.gateway.transaction():
            if not self.gateway.update_order_status(order.id, OrderStatus.PENDING, to_status):
                raise InvalidTransitionError(
                    f"Order {order.id} is no longer pending")

        return self.gateway.get_order(order.id)

    def _ensure_pending(self, order: Order) -> None:
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                f"Order {order.id} is {order.status.value}, only pending orders can change")

    def _get_supplier_order(self, order_id: UUID, supplier_id: UUID) -> Order:
        order = self.gateway.get_order(order_id)
        if not order:
            raise OrderNotFound()
        if order.supplier_id != supplier_id:
            raise UnauthorizedError("Order belongs to another supplier")
        return order

    # ==========================================================================
    # READS
    # ==========================================================================

    def get_order(self, order_id: UUID, actor: Actor) -> Order:
        order = self.gateway.get_order(order_id)
        if not order:
            raise OrderNotFound()

        if actor.is_consumer:
            allowed = order.consumer_id == actor.user_id
        else:
            allowed = order.supplier_id == actor.supplier_id

        if not allowed:
            raise UnauthorizedError("You cannot view this order")
        return order

    def list_consumer_orders(
        self,
        consumer_id: UUID,
        page: int = 1,
        page_size: int = 20,
        current_only: bool = False
    ) -> Tuple[List[Order], int]:
        return self.gateway.list_orders(
            consumer_id=consumer_id,
            statuses=CURRENT_ORDER_STATUSES if current_only else None,
            page=page,
            page_size=page_size
        )

    def list_supplier_orders(self, supplier_id: UUID, page: int = 1, page_size: int = 20) -> Tuple[List[Order], int]:
        return self.gateway.list_orders(
            supplier_id=supplier_id, page=page, page_size=page_size)

    # ==========================================================================
    # NOTIFICATIONS
    # ==========================================================================

    def _envelope(self, order: Order, event_type: str) -> Envelope:
        return Envelope(
            type=event_type,
            data=OrderRead.model_validate(order).model_dump(mode="json")
        )

    def _notify_supplier(self, order: Order, event_type: str) -> None:
        self.hub.send_to_supplier(
            order.supplier_id, self._envelope(order, event_type))

    def _notify_consumer(self, order: Order, event_type: str) -> None:
        self.hub.send_to_consumer(
            order.consumer_id, self._envelope(order, event_type))
