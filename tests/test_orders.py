import logging
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront.data.models import CartModel, OrderModel
from storefront.domain.schemas import OrderCreate
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService

from conftest import ADMIN_ID, CUSTOMER_ID, OTHER_ID, RecordingNotifier, auth, order_payload


def fill_cart(client):
    resp = client.post(
        "/cart/items",
        json={"product_id": 1, "quantity": 2, "selected_size": "M", "selected_colors": ["black"]},
        headers=auth(CUSTOMER_ID),
    )
    assert resp.status_code == 200


def test_checkout_creates_pending_order_and_deletes_cart(client, db, notifier):
    fill_cart(client)

    resp = client.post("/orders", json=order_payload(total="200"), headers=auth(CUSTOMER_ID))

    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "pending"
    assert order["is_paid"] is False
    assert order["paid_at"] is None
    assert order["payment_result"] is None
    assert Decimal(order["total_price"]) == Decimal("200")
    assert order["currency"] == "NGN"
    assert order["order_items"][0]["selected_colors"] == ["black"]

    # koszyk usuniety, nie tylko wyczyszczony
    assert db.query(CartModel).filter_by(user_id=CUSTOMER_ID).count() == 0
    assert notifier.placed == [(order["id"], "ada@example.com")]

    # kolejny odczyt koszyka zaczyna od pustego
    assert client.get("/cart", headers=auth(CUSTOMER_ID)).json()["cart_id"] is None


def test_empty_order_is_rejected_and_nothing_changes(client, db, notifier):
    fill_cart(client)

    resp = client.post("/orders", json=order_payload(items=[], total="0"), headers=auth(CUSTOMER_ID))

    assert resp.status_code == 400
    assert resp.json()["detail"] == "No order items"
    assert db.query(OrderModel).count() == 0
    cart = client.get("/cart", headers=auth(CUSTOMER_ID)).json()
    assert len(cart["items"]) == 1
    assert notifier.placed == []


def test_inconsistent_client_total_is_rejected(client, db):
    resp = client.post("/orders", json=order_payload(total="150"), headers=auth(CUSTOMER_ID))

    assert resp.status_code == 400
    assert db.query(OrderModel).count() == 0


def test_total_includes_tax_and_shipping(client):
    resp = client.post(
        "/orders",
        json=order_payload(total="215.50", tax="10.50", shipping="5"),
        headers=auth(CUSTOMER_ID),
    )
    assert resp.status_code == 201


def test_lenient_totals_accept_client_value(db, users):
    svc = OrderService(db, RecordingNotifier(), currency="NGN", strict_totals=False)
    order = svc.create_order(CUSTOMER_ID, OrderCreate(**order_payload(total="150")))
    assert order["total_price"] == Decimal("150")


def test_failed_cart_delete_rolls_back_order_and_is_logged(db, users, products, monkeypatch, caplog):
    CartService(db, products).add_product(CUSTOMER_ID, 1, 2, "M", ["black"])

    def broken_delete(self, cart):
        raise OperationalError("DELETE FROM carts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(CartRepo, "delete_cart", broken_delete)
    notifier = RecordingNotifier()
    svc = OrderService(db, notifier, currency="NGN")

    with caplog.at_level(logging.ERROR, logger="storefront"):
        with pytest.raises(OperationalError):
            svc.create_order(CUSTOMER_ID, OrderCreate(**order_payload(total="200")))

    assert db.query(OrderModel).count() == 0
    assert db.query(CartModel).filter_by(user_id=CUSTOMER_ID).count() == 1
    assert notifier.placed == []
    assert any("rolled back" in r.getMessage() for r in caplog.records)


def test_get_order_owner_admin_and_stranger(client, place_order):
    order = place_order()

    assert client.get(f"/orders/{order['id']}", headers=auth(CUSTOMER_ID)).status_code == 200
    assert client.get(f"/orders/{order['id']}", headers=auth(ADMIN_ID)).status_code == 200

    resp = client.get(f"/orders/{order['id']}", headers=auth(OTHER_ID))
    assert resp.status_code == 401


def test_get_missing_order_is_404(client):
    assert client.get("/orders/4242", headers=auth(CUSTOMER_ID)).status_code == 404


def test_my_orders_newest_first(client, place_order):
    first = place_order()
    second = place_order()
    place_order(user_id=OTHER_ID)

    resp = client.get("/orders/mine", headers=auth(CUSTOMER_ID))

    assert resp.status_code == 200
    assert [o["id"] for o in resp.json()] == [second["id"], first["id"]]
