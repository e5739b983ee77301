"""HTTP contract of the order endpoints."""

import uuid
from decimal import Decimal

from conftest import ADDRESS, bearer, count, fetch
from models import Order, OrderItem, Product


def order_body(*lines, total="19.99", address=ADDRESS):
    return {"items": list(lines), "total": total, "shippingAddress": address}


def item(product, quantity=1, price=19.99, **extra):
    return {"productId": str(product.id), "quantity": quantity, "price": price, **extra}


def test_place_order_returns_created_order(client, user, user_headers, make_product):
    product = make_product(stock=3)

    resp = client.post("/user/orders", json=order_body(item(product, 2), total=39.98), headers=user_headers)

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["user_id"] == str(user.id)
    assert Decimal(body["total"]) == Decimal("39.98")
    assert body["shipping_address"] == ADDRESS
    assert {"id", "created_at", "updated_at"} <= set(body)
    assert fetch(Product, product.id).stock_quantity == 1


def test_second_order_for_last_unit_is_rejected(client, user_headers, make_product):
    product = make_product(name="Limited", stock=1)

    first = client.post("/user/orders", json=order_body(item(product)), headers=user_headers)
    second = client.post("/user/orders", json=order_body(item(product)), headers=user_headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["detail"] == 'Insufficient stock for "Limited"'
    stored = fetch(Product, product.id)
    assert stored.stock_quantity == 0
    assert stored.in_stock is False


def test_unknown_product_is_a_client_error_and_persists_nothing(client, user_headers, make_product):
    product = make_product(stock=5)
    ghost = {"productId": str(uuid.uuid4()), "quantity": 1, "price": 5}

    resp = client.post("/user/orders", json=order_body(item(product), ghost), headers=user_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "One or more products no longer exist"
    assert fetch(Product, product.id).stock_quantity == 5
    assert count(Order) == 0
    assert count(OrderItem) == 0


def test_malformed_orders_are_rejected_with_400(client, user_headers, make_product):
    product = make_product()
    bad_bodies = [
        order_body(),
        order_body(item(product, quantity=0)),
        order_body(item(product, price=-1)),
        order_body(item(product), total=-5),
        {"items": [item(product)], "total": 19.99},
        order_body({"productId": "not-a-uuid", "quantity": 1, "price": 1}),
    ]
    for body in bad_bodies:
        resp = client.post("/user/orders", json=body, headers=user_headers)
        assert resp.status_code == 400, body
        assert resp.json()["detail"]
    assert count(Order) == 0


def test_sub_cent_amounts_are_rejected(client, user_headers, make_product):
    product = make_product(stock=5)

    for body in (
        order_body(item(product, price="19.999"), total="19.99"),
        order_body(item(product), total="19.999"),
        order_body(item(product, price="123456789.00"), total="123456789.00"),
    ):
        resp = client.post("/user/orders", json=body, headers=user_headers)
        assert resp.status_code == 400, body

    assert count(Order) == 0
    assert fetch(Product, product.id).stock_quantity == 5


def test_created_order_matches_what_is_stored(client, user_headers, make_product):
    product = make_product(stock=5)

    resp = client.post(
        "/user/orders",
        json=order_body(item(product, price="19.9"), total="19.9"),
        headers=user_headers,
    )

    assert resp.status_code == 201
    created = resp.json()
    stored = client.get(f"/user/orders/{created['id']}", headers=user_headers).json()
    assert created["total"] == stored["order"]["total"]
    assert Decimal(stored["order"]["total"]) == Decimal("19.90")
    assert Decimal(stored["items"][0]["price"]) == Decimal("19.90")


def test_non_integer_quantities_are_rejected(client, user_headers, make_product):
    product = make_product(stock=5)

    for quantity in (True, "2", 1.5):
        resp = client.post("/user/orders", json=order_body(item(product, quantity)), headers=user_headers)
        assert resp.status_code == 400, quantity

    assert count(Order) == 0
    assert fetch(Product, product.id).stock_quantity == 5


def test_placing_an_order_requires_authentication(client, make_product):
    product = make_product()
    resp = client.post("/user/orders", json=order_body(item(product)))
    assert resp.status_code == 401


def test_order_items_keep_their_snapshot_after_product_edit(client, user_headers, admin_headers, make_product):
    product = make_product(name="Sneaker", price="19.99")
    placed = client.post(
        "/user/orders",
        json=order_body(item(product, price=19.99, product_name="Sneaker", size="42")),
        headers=user_headers,
    )
    assert placed.status_code == 201

    edit = client.patch(
        f"/admin/products/{product.id}",
        json={"name": "Sneaker v2", "price": 29.99},
        headers=admin_headers,
    )
    assert edit.status_code == 200

    detail = client.get(f"/user/orders/{placed.json()['id']}", headers=user_headers).json()
    (line,) = detail["items"]
    assert line["product_name"] == "Sneaker"
    assert Decimal(line["price"]) == Decimal("19.99")
    assert line["size"] == "42"


def test_order_items_survive_product_deletion(client, user_headers, admin_headers, make_product):
    product = make_product(name="Sneaker")
    placed = client.post(
        "/user/orders", json=order_body(item(product, product_name="Sneaker")), headers=user_headers
    ).json()

    assert client.delete(f"/admin/products/{product.id}", headers=admin_headers).status_code == 200

    detail = client.get(f"/user/orders/{placed['id']}", headers=user_headers).json()
    (line,) = detail["items"]
    assert line["product_id"] is None
    assert line["product_name"] == "Sneaker"


def test_order_history_lists_own_orders_with_items(client, user_headers, make_user, make_product):
    product = make_product(stock=10)
    client.post("/user/orders", json=order_body(item(product)), headers=user_headers)
    client.post("/user/orders", json=order_body(item(product, 2), total=39.98), headers=user_headers)
    other = make_user(email="other@example.com")
    client.post("/user/orders", json=order_body(item(product)), headers=bearer(other))

    history = client.get("/user/orders", headers=user_headers).json()

    assert len(history) == 2
    assert [o["order_items"][0]["quantity"] for o in history] == [2, 1]


def test_other_users_orders_are_not_visible(client, user_headers, make_user, make_product):
    product = make_product()
    other = make_user(email="other@example.com")
    placed = client.post("/user/orders", json=order_body(item(product)), headers=bearer(other)).json()

    resp = client.get(f"/user/orders/{placed['id']}", headers=user_headers)

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Order not found"
