"""Order placement: turn a submitted cart into an order and reserve stock.

Everything a checkout writes (stock decrements, the order and its lines,
admin notifications, clearing the cart) happens in one transaction. Each
decrement is a conditional update that only matches while enough stock is
left, so concurrent checkouts of the same product cannot oversell, and any
failed line rolls the whole checkout back.
"""
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud
from .errors import InsufficientStock, InternalError, NotFound, PermissionDenied
from .models import CartItem, Order, OrderItem, Product
from .notifications import add_admin_notification, add_low_stock_alert, crossed_low_stock
from .schemas import NotificationType, OrderCreate, OrderStatus

logger = logging.getLogger(__name__)


@dataclass
class ReservedLine:
    product_id: int
    product_name: str
    quantity: int
    price: Decimal
    stock_after: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class CheckoutResult:
    order: Order
    created: bool
    low_stock: List[ReservedLine] = field(default_factory=list)


def merge_lines(items) -> Dict[int, int]:
    """Sum quantities per product id."""
    merged: Dict[int, int] = {}
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return merged


def reserve_stock(db: Session, product_id: int, quantity: int) -> ReservedLine:
    """Decrement stock by ``quantity`` only if at least that much is left.

    Returns the authoritative price/name read by the same statement. Raises
    NotFound or InsufficientStock when the guard does not match; the caller
    owns the transaction and must roll it back.
    """
    row = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .returning(Product.name, Product.price, Product.stock)
        .execution_options(synchronize_session=False)
    ).first()

    if row is None:
        current = db.execute(
            select(Product.name, Product.stock).where(Product.id == product_id)
        ).first()
        if current is None:
            raise NotFound("Product", product_id)
        raise InsufficientStock(product_id, current.stock, quantity, product_name=current.name)

    return ReservedLine(
        product_id=product_id,
        product_name=row.name,
        quantity=quantity,
        price=Decimal(row.price),
        stock_after=row.stock,
    )


def _replay(db: Session, user_id: int, key: Optional[str]) -> Optional[Order]:
    if not key:
        return None
    return crud.get_order_by_idempotency_key(db, user_id, key)


def place_order(
    db: Session,
    principal: Dict,
    order_in: OrderCreate,
    idempotency_key: Optional[str] = None,
    deadline: Optional[float] = None,
) -> CheckoutResult:
    """Place an order for ``principal`` in a single transaction.

    ``deadline`` is a ``time.monotonic()`` value; if it has passed by the time
    everything is staged, the transaction is rolled back instead of committed.
    """
    user_id = principal["id"]
    if order_in.user_id != user_id:
        logger.warning(
            "User %s tried to place an order for user %s", user_id, order_in.user_id
        )
        raise PermissionDenied("You can only create orders for yourself")

    key = idempotency_key or order_in.idempotency_key
    if key is None:
        logger.warning("Checkout for user %s has no idempotency key; a retry will place a second order", user_id)

    existing = _replay(db, user_id, key)
    if existing is not None:
        logger.info("Checkout replay for user %s with key %s returns order %s", user_id, key, existing.id)
        return CheckoutResult(order=existing, created=False)

    merged = merge_lines(order_in.items)

    try:
        # Stable lock order across concurrent checkouts
        lines: List[ReservedLine] = [
            reserve_stock(db, pid, merged[pid]) for pid in sorted(merged)
        ]
        total = sum((line.line_total for line in lines), Decimal("0"))

        if order_in.total is not None and Decimal(order_in.total) != total:
            logger.warning(
                "Client total %s for user %s differs from server total %s; using server total",
                order_in.total, user_id, total,
            )

        shipping = order_in.shipping
        db_order = Order(
            user_id=user_id,
            total=total,
            status=OrderStatus.PENDING.value,
            shipping_name=shipping.name,
            shipping_address=shipping.address,
            shipping_city=shipping.city,
            shipping_state=shipping.state,
            shipping_zip=shipping.zip,
            payment_method=order_in.payment_method.value,
            idempotency_key=key,
        )
        db.add(db_order)
        db.flush()  # Get order ID without committing

        for line in lines:
            db.add(
                OrderItem(
                    order_id=db_order.id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    price=line.price,
                )
            )

        low_stock = [
            line for line in lines
            if crossed_low_stock(line.stock_after + line.quantity, line.stock_after)
        ]
        for line in low_stock:
            add_low_stock_alert(db, product_id=line.product_id, product_name=line.product_name, stock=line.stock_after)

        add_admin_notification(
            db,
            title=f"New Order Placed: #{db_order.id:06d}",
            message=f"User {user_id} placed an order for {len(lines)} item(s) totaling ₹{total}.",
            type=NotificationType.ORDER,
            order_id=db_order.id,
        )

        db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
        if deadline is not None and time.monotonic() > deadline:
            logger.error("Checkout for user %s ran past its deadline; rolling back", user_id)
            raise InternalError("Request timed out")
        db.commit()
    except Exception as exc:
        db.rollback()
        # A duplicate submission with the same key may have committed first
        existing = _replay(db, user_id, key)
        if existing is not None:
            logger.info("Concurrent checkout replay for user %s with key %s", user_id, key)
            return CheckoutResult(order=existing, created=False)
        if isinstance(exc, IntegrityError):
            logger.exception("Checkout for user %s violated a constraint", user_id)
            raise InternalError("Failed to create order") from exc
        raise

    db.refresh(db_order)
    for line in lines:
        logger.info(
            "Stock for product %s decremented by %s to %s", line.product_id, line.quantity, line.stock_after
        )
    logger.info("Order %s placed by user %s, total %s; cart cleared", db_order.id, user_id, total)
    return CheckoutResult(order=db_order, created=True, low_stock=low_stock)


def order_event_payload(order: Order) -> Dict:
    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "total": str(order.total),
        "status": order.status,
        "items": [
            {"product_id": i.product_id, "quantity": i.quantity, "price": str(i.price)}
            for i in order.items
        ],
    }

