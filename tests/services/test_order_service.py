import uuid
from decimal import Decimal

import pytest
from sqlmodel import Session, select

from app.core.exceptions import (
    BelowMinimumOrderQuantity, EmptyOrderTotal, InsufficientStockError,
    InvalidTransitionError, OrderNotFound, ProductNotFound,
    ProductSupplierMismatch, UnauthorizedError
)
from app.db.schema import Order, OrderItem, OrderStatus, Product
from app.models.order import OrderItemCreate
from app.services.order import OrderService, discounted_price
from tests.utils.helpers import actor_for


@pytest.fixture
def service(session: Session, recording_hub) -> OrderService:
    return OrderService(session, hub=recording_hub)


def _stock(session: Session, product: Product) -> int:
    session.expire_all()
    return session.get(Product, product.id).stock_level


class TestCreateOrder:
    """Pricing and validation when a consumer places an order."""

    def test_discounted_order_totals(self, service, consumer, supplier, make_product):
        """5 units at 100.00 with 10% off: 450 + 45 tax = 495."""
        product = make_product(supplier, price=Decimal("100.00"), discount=Decimal("10"))

        order = service.create_order(
            consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=5)])

        assert order.status == OrderStatus.PENDING
        assert order.subtotal == Decimal("450.00")
        assert order.tax == Decimal("45.00")
        assert order.shipping_fee == Decimal("0.00")
        assert order.total == Decimal("495.00")
        assert len(order.items) == 1
        assert order.items[0].unit_price == Decimal("90.00")
        assert order.items[0].subtotal == Decimal("450.00")

    def test_totals_invariant_across_lines(self, service, consumer, supplier, make_product):
        first = make_product(supplier, name="Olive Oil", price=Decimal("12.35"), discount=Decimal("5"))
        second = make_product(supplier, name="Potatoes", price=Decimal("3.99"))

        order = service.create_order(consumer.id, supplier.id, [
            OrderItemCreate(product_id=first.id, quantity=3),
            OrderItemCreate(product_id=second.id, quantity=7),
        ])

        assert order.subtotal == sum(item.subtotal for item in order.items)
        assert order.total == order.subtotal + order.tax + order.shipping_fee
        for item in order.items:
            assert item.subtotal == item.unit_price * item.quantity

    def test_creation_does_not_touch_stock(self, service, session, consumer, supplier, make_product):
        product = make_product(supplier, stock_level=20)

        service.create_order(
            consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=5)])

        assert _stock(session, product) == 20

    def test_unknown_product(self, service, session, consumer, supplier):
        with pytest.raises(ProductNotFound):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=uuid.uuid4(), quantity=1)])

        assert session.exec(select(Order)).all() == []

    def test_product_of_another_supplier(self, service, consumer, supplier, other_supplier, make_product):
        product = make_product(other_supplier)

        with pytest.raises(ProductSupplierMismatch):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=1)])

    def test_more_than_available(self, service, consumer, supplier, make_product):
        product = make_product(supplier, stock_level=3)

        with pytest.raises(InsufficientStockError):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=4)])

    def test_below_minimum_quantity(self, service, consumer, supplier, make_product):
        product = make_product(supplier, min_order_quantity=10)

        with pytest.raises(BelowMinimumOrderQuantity):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=9)])

    def test_below_minimum_wins_over_short_stock(self, service, consumer, supplier, make_product):
        product = make_product(supplier, stock_level=2, min_order_quantity=5)

        with pytest.raises(BelowMinimumOrderQuantity):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=3)])

    def test_fully_discounted_order_is_rejected(self, service, session, consumer, supplier, make_product):
        product = make_product(supplier, discount=Decimal("100"))

        with pytest.raises(EmptyOrderTotal):
            service.create_order(
                consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=2)])

        assert session.exec(select(OrderItem)).all() == []

    def test_supplier_is_notified(self, service, recording_hub, consumer, supplier, make_product):
        product = make_product(supplier)

        order = service.create_order(
            consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=1)])

        scope, target, envelope = recording_hub.sent[0]
        assert (scope, target, envelope.type) == ("supplier", str(supplier.id), "order_created")
        assert envelope.data["id"] == str(order.id)


class TestOrderTransitions:
    """Accept, reject and cancel of pending orders."""

    @pytest.fixture
    def product(self, supplier, make_product) -> Product:
        return make_product(supplier, stock_level=20)

    @pytest.fixture
    def order(self, service, consumer, supplier, product) -> Order:
        return service.create_order(
            consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=5)])

    def test_accept_decrements_stock(self, service, session, order, supplier, product):
        accepted = service.accept_order(order.id, supplier.id)

        assert accepted.status == OrderStatus.ACCEPTED
        assert _stock(session, product) == 15

    def test_second_accept_is_invalid(self, service, session, order, supplier, product):
        service.accept_order(order.id, supplier.id)

        with pytest.raises(InvalidTransitionError):
            service.accept_order(order.id, supplier.id)

        assert _stock(session, product) == 15

    def test_accept_by_other_supplier(self, service, session, order, other_supplier, product):
        with pytest.raises(UnauthorizedError):
            service.accept_order(order.id, other_supplier.id)

        assert _stock(session, product) == 20
        assert session.get(Order, order.id).status == OrderStatus.PENDING

    def test_accept_unknown_order(self, service, supplier):
        with pytest.raises(OrderNotFound):
            service.accept_order(uuid.uuid4(), supplier.id)

    def test_accept_without_stock_rolls_back(self, service, session, consumer, supplier, make_product):
        """A short second line leaves the first line's stock untouched."""
        plenty = make_product(supplier, name="Potatoes", stock_level=50)
        scarce = make_product(supplier, name="Saffron", stock_level=5)
        order = service.create_order(consumer.id, supplier.id, [
            OrderItemCreate(product_id=plenty.id, quantity=10),
            OrderItemCreate(product_id=scarce.id, quantity=5),
        ])

        # Stock sold elsewhere between ordering and acceptance
        scarce.stock_level = 2
        session.add(scarce)
        session.commit()

        with pytest.raises(InsufficientStockError):
            service.accept_order(order.id, supplier.id)

        assert _stock(session, plenty) == 50
        assert _stock(session, scarce) == 2
        assert session.get(Order, order.id).status == OrderStatus.PENDING

    def test_reject(self, service, session, order, supplier, product, recording_hub):
        rejected = service.reject_order(order.id, supplier.id)

        assert rejected.status == OrderStatus.REJECTED
        assert _stock(session, product) == 20
        assert recording_hub.types()[-1] == "order_rejected"

    def test_cancel(self, service, order, consumer, recording_hub, supplier):
        cancelled = service.cancel_order(order.id, consumer.id)

        assert cancelled.status == OrderStatus.CANCELLED
        scope, target, envelope = recording_hub.sent[-1]
        assert (scope, target, envelope.type) == ("supplier", str(supplier.id), "order_cancelled")

    def test_cancel_by_other_consumer(self, service, order, other_consumer):
        with pytest.raises(UnauthorizedError):
            service.cancel_order(order.id, other_consumer.id)

    @pytest.mark.parametrize("terminal", ["accept", "reject", "cancel"])
    def test_terminal_states_are_final(self, service, order, consumer, supplier, terminal):
        if terminal == "accept":
            service.accept_order(order.id, supplier.id)
        elif terminal == "reject":
            service.reject_order(order.id, supplier.id)
        else:
            service.cancel_order(order.id, consumer.id)

        with pytest.raises(InvalidTransitionError):
            service.reject_order(order.id, supplier.id)
        with pytest.raises(InvalidTransitionError):
            service.cancel_order(order.id, consumer.id)

    def test_lost_race_changes_nothing(self, service, session, order, consumer, supplier, product, monkeypatch):
        """The order was cancelled after this request already saw it pending."""
        OrderService(session).cancel_order(order.id, consumer.id)
        monkeypatch.setattr(service, "_ensure_pending", lambda order: None)

        with pytest.raises(InvalidTransitionError):
            service.accept_order(order.id, supplier.id)

        assert _stock(session, product) == 20
        session.expire_all()
        assert session.get(Order, order.id).status == OrderStatus.CANCELLED

    def test_accept_notifies_consumer(self, service, order, consumer, supplier, recording_hub):
        service.accept_order(order.id, supplier.id)

        scope, target, envelope = recording_hub.sent[-1]
        assert (scope, target, envelope.type) == ("consumer", str(consumer.id), "order_accepted")
        assert envelope.data["status"] == "accepted"


class TestOrderReads:

    def test_current_orders_exclude_terminal(self, service, consumer, supplier, make_product):
        product = make_product(supplier, stock_level=100)
        items = [OrderItemCreate(product_id=product.id, quantity=1)]
        pending = service.create_order(consumer.id, supplier.id, items)
        accepted = service.create_order(consumer.id, supplier.id, items)
        cancelled = service.create_order(consumer.id, supplier.id, items)
        service.accept_order(accepted.id, supplier.id)
        service.cancel_order(cancelled.id, consumer.id)

        current, total = service.list_consumer_orders(consumer.id, current_only=True)
        everything, all_total = service.list_consumer_orders(consumer.id)

        assert {o.id for o in current} == {pending.id, accepted.id}
        assert total == 2
        assert all_total == 3
        assert len(everything) == 3

    def test_supplier_listing_is_scoped(self, service, consumer, supplier, other_supplier, make_product):
        mine = make_product(supplier)
        theirs = make_product(other_supplier)
        service.create_order(consumer.id, supplier.id, [OrderItemCreate(product_id=mine.id, quantity=1)])
        service.create_order(consumer.id, other_supplier.id, [OrderItemCreate(product_id=theirs.id, quantity=1)])

        orders, total = service.list_supplier_orders(supplier.id)

        assert total == 1
        assert orders[0].supplier_id == supplier.id

    def test_get_order_visibility(self, service, consumer, other_consumer, sales_rep, outside_staff, supplier, make_product):
        product = make_product(supplier)
        order = service.create_order(
            consumer.id, supplier.id, [OrderItemCreate(product_id=product.id, quantity=1)])

        assert service.get_order(order.id, actor_for(consumer)).id == order.id
        assert service.get_order(order.id, actor_for(sales_rep)).id == order.id
        with pytest.raises(UnauthorizedError):
            service.get_order(order.id, actor_for(other_consumer))
        with pytest.raises(UnauthorizedError):
            service.get_order(order.id, actor_for(outside_staff))


def test_discounted_price_rounds_half_up():
    assert discounted_price(Decimal("0.15"), Decimal("50")) == Decimal("0.08")
    assert discounted_price(Decimal("19.99"), None) == Decimal("19.99")
