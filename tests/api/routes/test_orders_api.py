from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tests.utils.helpers import assert_error, auth_headers


@pytest.fixture
def product(supplier, make_product):
    return make_product(supplier, price=Decimal("100.00"), discount=Decimal("10"), stock_level=20)


def place_order(client: TestClient, consumer, supplier, product, quantity: int = 5):
    return client.post(
        "/api/v1/consumer/orders",
        json={
            "supplier_id": str(supplier.id),
            "items": [{"product_id": str(product.id), "quantity": quantity}]
        },
        headers=auth_headers(consumer)
    )


class TestOrdersAPI:

    def test_order_lifecycle(self, client, consumer, supplier, sales_rep, product):
        """Place, accept, re-accept: 495 total, stock 20 -> 15, then a conflict."""
        response = place_order(client, consumer, supplier, product)
        assert response.status_code == 201, response.text
        order = response.json()
        assert order["status"] == "pending"
        assert Decimal(order["subtotal"]) == Decimal("450")
        assert Decimal(order["tax"]) == Decimal("45")
        assert Decimal(order["total"]) == Decimal("495")

        response = client.post(
            f"/api/v1/supplier/orders/{order['id']}/accept", headers=auth_headers(sales_rep))
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        response = client.post(
            f"/api/v1/supplier/orders/{order['id']}/accept", headers=auth_headers(sales_rep))
        assert_error(response, 409, "invalid_transition")

        catalog = client.post(
            "/api/v1/supplier/products/bulk-update",
            json={"product_ids": [str(product.id)], "patch": {"min_order_quantity": 1}},
            headers=auth_headers(sales_rep)
        ).json()
        assert catalog[0]["stock_level"] == 15

    def test_requires_authentication(self, client, consumer, supplier, product):
        response = client.post(
            "/api/v1/consumer/orders",
            json={"supplier_id": str(supplier.id), "items": [{"product_id": str(product.id), "quantity": 1}]}
        )
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/consumer/orders", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_staff_cannot_place_orders(self, client, sales_rep, supplier, product):
        response = place_order(client, sales_rep, supplier, product)
        assert_error(response, 403, "unauthorized")

    def test_consumer_cannot_accept(self, client, consumer, supplier, product):
        order = place_order(client, consumer, supplier, product).json()

        response = client.post(
            f"/api/v1/supplier/orders/{order['id']}/accept", headers=auth_headers(consumer))
        assert_error(response, 403, "unauthorized")

    def test_other_supplier_cannot_accept(self, client, consumer, supplier, outside_staff, product):
        order = place_order(client, consumer, supplier, product).json()

        response = client.post(
            f"/api/v1/supplier/orders/{order['id']}/accept", headers=auth_headers(outside_staff))
        assert_error(response, 403, "unauthorized")

    def test_insufficient_stock(self, client, consumer, supplier, product):
        response = place_order(client, consumer, supplier, product, quantity=21)
        assert_error(response, 409, "insufficient_stock")

    def test_zero_quantity_is_rejected_by_schema(self, client, consumer, supplier, product):
        response = place_order(client, consumer, supplier, product, quantity=0)
        assert response.status_code == 422

    def test_unknown_order(self, client, consumer):
        response = client.get(
            "/api/v1/consumer/orders/00000000-0000-0000-0000-000000000000",
            headers=auth_headers(consumer))
        assert_error(response, 404, "not_found")

    def test_cancel_and_current_listing(self, client, consumer, supplier, product):
        first = place_order(client, consumer, supplier, product, quantity=1).json()
        second = place_order(client, consumer, supplier, product, quantity=2).json()

        response = client.post(
            f"/api/v1/consumer/orders/{first['id']}/cancel", headers=auth_headers(consumer))
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        current = client.get(
            "/api/v1/consumer/orders/current", headers=auth_headers(consumer)).json()
        assert [o["id"] for o in current["data"]] == [second["id"]]
        assert current["total"] == 1

        history = client.get(
            "/api/v1/consumer/orders", headers=auth_headers(consumer)).json()
        assert history["total"] == 2

    def test_reject_and_supplier_listing(self, client, consumer, supplier, sales_rep, product):
        order = place_order(client, consumer, supplier, product).json()

        response = client.post(
            f"/api/v1/supplier/orders/{order['id']}/reject", headers=auth_headers(sales_rep))
        assert response.json()["status"] == "rejected"

        listing = client.get(
            "/api/v1/supplier/orders", params={"page": 1, "page_size": 10},
            headers=auth_headers(sales_rep)).json()
        assert listing["total"] == 1
        assert listing["data"][0]["status"] == "rejected"
