import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import config
from .errors import NotFound
from .models import Notification, NotificationRead
from .schemas import IntendedFor, NotificationMetadata, NotificationOut, NotificationType

logger = logging.getLogger(__name__)


def crossed_low_stock(old_stock: int, new_stock: int) -> bool:
    threshold = config.LOW_STOCK_THRESHOLD
    return old_stock >= threshold > new_stock


def add_admin_notification(
    db: Session,
    *,
    title: str,
    message: str,
    type: NotificationType,
    order_id: Optional[int] = None,
    product_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> Notification:
    """Stage an admin notification in the caller's transaction."""
    notification = Notification(
        title=title,
        message=message,
        created_by=created_by,
        intended_for=IntendedFor.ADMINS.value,
        type=type.value,
        order_id=order_id,
        product_id=product_id,
    )
    db.add(notification)
    logger.info("Staged admin notification: %s (type: %s)", title, type.value)
    return notification


def add_low_stock_alert(db: Session, *, product_id: int, product_name: str, stock: int) -> Notification:
    return add_admin_notification(
        db,
        title=f"Low Stock Alert: {product_name}",
        message=f"Stock for {product_name} is now {stock} units.",
        type=NotificationType.STOCK,
        product_id=product_id,
    )


def create_broadcast(
    db: Session, *, title: str, message: str, intended_for: IntendedFor, created_by: int
) -> Notification:
    notification = Notification(
        title=title,
        message=message,
        created_by=created_by,
        intended_for=intended_for.value,
        type=NotificationType.USER.value,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info("Notification %s created by admin %s: %s", notification.id, created_by, title)
    return notification


def list_for(db: Session, principal: Dict) -> List[NotificationOut]:
    query = db.query(Notification).options(
        selectinload(Notification.creator),
        selectinload(Notification.order),
        selectinload(Notification.product),
        selectinload(Notification.reads),
    )
    if principal["is_admin"]:
        query = query.filter(Notification.intended_for == IntendedFor.ADMINS.value)
    else:
        query = query.filter(
            Notification.intended_for.in_([IntendedFor.USERS.value, IntendedFor.ALL.value])
        )

    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return [to_out(n, principal["id"]) for n in notifications]


def to_out(notification: Notification, user_id: int) -> NotificationOut:
    order = notification.order
    return NotificationOut(
        id=notification.id,
        title=notification.title,
        message=notification.message,
        created_at=notification.created_at,
        created_by=notification.creator.username if notification.creator else "System",
        intended_for=notification.intended_for,
        type=notification.type,
        is_read=any(read.user_id == user_id for read in notification.reads),
        metadata=NotificationMetadata(
            order_id=order.id if order else None,
            order_total=order.total if order else None,
            order_status=order.status if order else None,
            product_name=notification.product.name if notification.product else None,
        ),
    )


def mark_read(db: Session, notification_id: int, user_id: int) -> bool:
    """Record a read receipt. Returns False when one already existed."""
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if notification is None:
        raise NotFound("Notification", notification_id)

    exists = (
        db.query(NotificationRead)
        .filter(
            NotificationRead.notification_id == notification_id,
            NotificationRead.user_id == user_id,
        )
        .first()
    )
    if exists:
        logger.info("Notification %s already read by user %s", notification_id, user_id)
        return False

    db.add(NotificationRead(notification_id=notification_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request recorded the same receipt
        db.rollback()
        return False
    logger.info("Notification %s marked as read by user %s", notification_id, user_id)
    return True
