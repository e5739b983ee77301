"""Single-row stock adjustments and order cancellation."""

import uuid
from decimal import Decimal

import pytest

import database
import orders
from conftest import ADDRESS, fetch, line
from models import Order, OrderStatus, Product


def test_decrement_stock_takes_units_and_reports_success(make_product):
    product = make_product(stock=3)

    with database.SessionLocal() as session, session.begin():
        assert orders.decrement_stock(session, product.id, 2) is True

    stored = fetch(Product, product.id)
    assert stored.stock_quantity == 1
    assert stored.in_stock is True


def test_decrement_stock_to_zero_clears_in_stock(make_product):
    product = make_product(stock=2)

    with database.SessionLocal() as session, session.begin():
        assert orders.decrement_stock(session, product.id, 2) is True

    assert fetch(Product, product.id).in_stock is False


def test_decrement_stock_refuses_without_mutating(make_product):
    product = make_product(stock=1)

    with database.SessionLocal() as session, session.begin():
        assert orders.decrement_stock(session, product.id, 2) is False

    assert fetch(Product, product.id).stock_quantity == 1


def test_decrement_stock_for_unknown_product_is_false(engine):
    with database.SessionLocal() as session, session.begin():
        assert orders.decrement_stock(session, uuid.uuid4(), 1) is False


def test_restore_stock_puts_sold_out_product_back_in_stock(make_product):
    product = make_product(stock=0)
    assert fetch(Product, product.id).in_stock is False

    with database.SessionLocal() as session, session.begin():
        orders.restore_stock(session, product.id, 3)

    stored = fetch(Product, product.id)
    assert stored.stock_quantity == 3
    assert stored.in_stock is True


def test_restore_stock_ignores_deleted_products(engine):
    with database.SessionLocal() as session, session.begin():
        orders.restore_stock(session, uuid.uuid4(), 3)


def test_cancelling_an_order_returns_its_stock(user, make_product):
    product = make_product(stock=2)
    order = orders.place_order(user.id, [line(product, quantity=2)], Decimal("39.98"), ADDRESS)
    assert fetch(Product, product.id).in_stock is False

    with database.SessionLocal() as session, session.begin():
        updated = orders.update_order_status(session, order.id, OrderStatus.CANCELLED)
        assert updated.status == "cancelled"

    stored = fetch(Product, product.id)
    assert stored.stock_quantity == 2
    assert stored.in_stock is True


def test_cancelled_order_cannot_be_reopened(user, make_product):
    product = make_product(stock=2)
    order = orders.place_order(user.id, [line(product)], Decimal("19.99"), ADDRESS)
    with database.SessionLocal() as session, session.begin():
        orders.update_order_status(session, order.id, OrderStatus.CANCELLED)

    with pytest.raises(orders.InvalidStatusTransition):
        with database.SessionLocal() as session, session.begin():
            orders.update_order_status(session, order.id, OrderStatus.PROCESSING)

    assert fetch(Order, order.id).status == "cancelled"
    assert fetch(Product, product.id).stock_quantity == 2


def test_status_change_without_cancellation_leaves_stock_alone(user, make_product):
    product = make_product(stock=5)
    order = orders.place_order(user.id, [line(product, quantity=2)], Decimal("39.98"), ADDRESS)

    with database.SessionLocal() as session, session.begin():
        orders.update_order_status(session, order.id, OrderStatus.SHIPPED)

    assert fetch(Order, order.id).status == "shipped"
    assert fetch(Product, product.id).stock_quantity == 3


def test_update_status_of_unknown_order_returns_none(engine):
    with database.SessionLocal() as session, session.begin():
        assert orders.update_order_status(session, uuid.uuid4(), OrderStatus.SHIPPED) is None
