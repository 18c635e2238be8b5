"""Order status state machine.

Pending -> Processing | Rejected
Processing -> Shipped | Rejected
Shipped -> Delivered
Delivered and Rejected are terminal.
"""
import datetime as dt
import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import config
from .errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from .models import Order
from .notifications import add_admin_notification
from .schemas import NotificationType, OrderStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.REJECTED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.REJECTED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

ACTIVE_STATUSES = [
    status.value for status, targets in ALLOWED_TRANSITIONS.items() if targets
]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def parse_status(value) -> Optional[OrderStatus]:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def _short(order_id: int) -> str:
    return f"#{order_id:06d}"


def transition_order(db: Session, order_id: int, requested, *, actor_id: int, reason: str = "updated") -> Order:
    """Move an order to ``requested`` if the adjacency table allows it.

    The write is guarded on the status we validated against, so two
    concurrent transitions of the same order cannot both apply.
    """
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFound("Order", order_id)

    current = OrderStatus(order.status)
    target = parse_status(requested)
    if target is None or not can_transition(current, target):
        shown = target.value if target is not None else requested
        logger.warning("Rejected transition of order %s from %s to %s", order_id, current.value, shown)
        raise InvalidTransition(current.value, shown)

    try:
        result = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current.value)
            .values(status=target.value, updated_at=dt.datetime.now(dt.timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            latest = db.query(Order.status).filter(Order.id == order_id).scalar()
            raise InvalidTransition(latest or current.value, target.value)

        add_admin_notification(
            db,
            title=f"Order Status Updated: {_short(order_id)}",
            message=f"Order {order_id} {reason}: status changed from {current.value} to {target.value}.",
            type=NotificationType.ORDER,
            order_id=order_id,
            created_by=actor_id,
        )
        db.commit()
    except InvalidTransition:
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Order %s status %s -> %s by user %s", order_id, current.value, target.value, actor_id)
    return order


def cancel_order(db: Session, order_id: int, *, user_id: int) -> Order:
    """Owner cancellation: Pending/Processing -> Rejected within the cancel window."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFound("Order", order_id)
    if order.user_id != user_id:
        logger.warning("User %s tried to cancel order %s owned by %s", user_id, order_id, order.user_id)
        raise PermissionDenied("You can only cancel your own orders")

    current = OrderStatus(order.status)
    if not can_transition(current, OrderStatus.REJECTED):
        raise InvalidTransition(current.value, OrderStatus.REJECTED.value)

    created = order.created_at
    if created is not None:
        if created.tzinfo is None:
            created = created.replace(tzinfo=dt.timezone.utc)
        age = dt.datetime.now(dt.timezone.utc) - created
        if age > dt.timedelta(hours=config.ORDER_CANCEL_WINDOW_HOURS):
            raise ValidationError(
                f"Order can only be cancelled within {config.ORDER_CANCEL_WINDOW_HOURS} hours of placement",
                field="orderId",
            )

    return transition_order(db, order_id, OrderStatus.REJECTED, actor_id=user_id, reason="cancelled by customer")
