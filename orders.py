"""
Order placement and stock reservation.

``place_order`` is the only writer of new orders. It runs in one transaction on its own
session: every product row is locked (``SELECT ... FOR UPDATE``), checked and decremented
before the order and its items are inserted, and any failure rolls the whole unit back.

Products are locked in ascending id order rather than request order, so two checkouts
touching the same products always queue on them in the same sequence.

``decrement_stock`` and ``restore_stock`` are the single-row variants. They run inside the
caller's transaction and are used for compensating work such as cancellations.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from database import SessionLocal
from models import Order, OrderItem, OrderStatus, Product
from schemas import OrderItemIn

logger = logging.getLogger("storefront.orders")

DEFAULT_PRODUCT_NAME = "Product"
CENTS = Decimal("0.01")


class OrderError(Exception):
    """A business rule rejected the request; nothing was persisted."""


class ProductNotFound(OrderError):
    def __init__(self, product_id: uuid.UUID):
        super().__init__("One or more products no longer exist")
        self.product_id = product_id


class InsufficientStock(OrderError):
    def __init__(self, product_name: str):
        super().__init__(f'Insufficient stock for "{product_name}"')
        self.product_name = product_name


class InvalidStatusTransition(OrderError):
    pass


def lock_product(session: Session, product_id: uuid.UUID) -> Optional[Product]:
    stmt = select(Product).where(Product.id == product_id).with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def decrement_stock(session: Session, product_id: uuid.UUID, quantity: int) -> bool:
    """Take ``quantity`` units of a product under a row lock.

    Returns False, leaving the row untouched, when the product is missing or holds
    fewer than ``quantity`` units.
    """
    product = lock_product(session, product_id)
    if product is None or product.stock_quantity < quantity:
        return False
    product.adjust_stock(-quantity)
    return True


def restore_stock(session: Session, product_id: uuid.UUID, quantity: int) -> None:
    product = lock_product(session, product_id)
    if product is None:
        return
    product.adjust_stock(quantity)


def _check_total(items: Sequence[OrderItemIn], total: Decimal) -> None:
    computed = sum((item.price * item.quantity for item in items), Decimal("0"))
    if computed != total:
        logger.warning("Client total %s differs from line items sum %s", total, computed)


def place_order(
    user_id: uuid.UUID,
    items: Sequence[OrderItemIn],
    total: Decimal,
    shipping_address: Dict[str, Any],
    session_factory: Optional[Callable[[], Session]] = None,
) -> Order:
    """Reserve stock for every line item and persist the order, or persist nothing.

    Raises ``ProductNotFound`` or ``InsufficientStock`` for business-rule failures;
    database errors propagate unchanged after the rollback.
    """
    if not items:
        raise ValueError("An order needs at least one item")
    _check_total(items, total)

    factory = session_factory or SessionLocal
    with factory() as session:
        with session.begin():
            for item in sorted(items, key=lambda i: i.product_id):
                product = lock_product(session, item.product_id)
                if product is None:
                    logger.info("Order rejected for user %s: product %s is gone", user_id, item.product_id)
                    raise ProductNotFound(item.product_id)
                if product.stock_quantity < item.quantity:
                    logger.info(
                        "Order rejected for user %s: %s has %d, wanted %d",
                        user_id, product.name, product.stock_quantity, item.quantity,
                    )
                    raise InsufficientStock(product.name)
                product.adjust_stock(-item.quantity)

            order = Order(
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                total=total.quantize(CENTS),
                shipping_address=shipping_address,
            )
            order.order_items = [
                OrderItem(
                    product_id=item.product_id,
                    position=position,
                    product_name=item.product_name or DEFAULT_PRODUCT_NAME,
                    quantity=item.quantity,
                    size=item.size,
                    price=item.price.quantize(CENTS),
                )
                for position, item in enumerate(items)
            ]
            session.add(order)

    logger.info("Order %s placed by user %s with %d item(s)", order.id, user_id, len(items))
    return order


def update_order_status(session: Session, order_id: uuid.UUID, status: OrderStatus) -> Optional[Order]:
    """Change an order's status inside the caller's transaction.

    Cancelling returns every item's quantity to stock. A cancelled order cannot move to
    another status because its stock has already been released.
    """
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.order_items))
        .with_for_update()
    )
    order = session.execute(stmt).scalar_one_or_none()
    if order is None:
        return None

    if order.status == status.value:
        return order
    if order.status == OrderStatus.CANCELLED.value:
        raise InvalidStatusTransition("Cancelled orders cannot be reopened")

    if status is OrderStatus.CANCELLED:
        surviving = [item for item in order.order_items if item.product_id is not None]
        for item in sorted(surviving, key=lambda i: i.product_id):
            restore_stock(session, item.product_id, item.quantity)
        logger.info("Order %s cancelled, stock restored", order.id)

    order.status = status.value
    return order
