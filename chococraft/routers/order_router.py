import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_admin, get_current_user
from ..checkout import order_event_payload, place_order
from ..database import get_db
from ..errors import PermissionDenied, ValidationError
from ..messaging import publish_after_commit
from ..order_state import cancel_order, transition_order

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/orders",
    tags=["Orders"]
)


def _publish_status_changed(order) -> None:
    publish_after_commit(
        "order.status_changed",
        {"order_id": order.id, "user_id": order.user_id, "status": order.status},
    )


@router.post("", response_model=schemas.OrderPlaced, status_code=status.HTTP_201_CREATED)
def create_order(
    order_in: schemas.OrderCreate,
    request: Request,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", min_length=1, max_length=100),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Place an order from the submitted items.

    Prices and the total are computed from the catalog; the client's values
    are ignored. Resubmitting with the same idempotency key returns the
    original order with 200 instead of placing a second one.
    """
    result = place_order(
        db,
        current_user,
        order_in,
        idempotency_key=idempotency_key,
        deadline=getattr(request.state, "deadline", None),
    )
    order = result.order

    if not result.created:
        response.status_code = status.HTTP_200_OK
        return schemas.OrderPlaced(
            message="Order already placed",
            order_id=order.id,
            total=order.total,
            status=order.status,
        )

    publish_after_commit("order.created", order_event_payload(order))
    for line in result.low_stock:
        publish_after_commit(
            "stock.low",
            {"product_id": line.product_id, "product_name": line.product_name, "stock": line.stock_after},
        )

    return schemas.OrderPlaced(
        message="Order placed successfully",
        order_id=order.id,
        total=order.total,
        status=order.status,
    )


@router.get("", response_model=List[schemas.OrderOut])
def get_orders(
    skip: int = 0,
    limit: int = 100,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    orders = crud.get_orders(db=db, skip=skip, limit=limit)
    return [schemas.OrderOut.from_order(o) for o in orders]


@router.get("/{user_id:int}", response_model=List[schemas.OrderOut])
def get_user_orders(
    user_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if current_user["id"] != user_id and not current_user["is_admin"]:
        logger.warning("User %s tried to read orders of user %s", current_user["id"], user_id)
        raise PermissionDenied("You can only view your own orders")

    orders = crud.get_orders_by_user(db=db, user_id=user_id)
    return [schemas.OrderOut.from_order(o) for o in orders]


@router.put("/{order_id:int}/status", response_model=schemas.StatusChanged)
def update_order_status(
    order_id: int,
    status_update: schemas.StatusUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if status_update.status is None:
        raise ValidationError("'status' is required", field="status")

    order = transition_order(db, order_id, status_update.status, actor_id=current_admin["id"])
    _publish_status_changed(order)
    return schemas.StatusChanged(message="Order status updated", order_id=order.id, status=order.status)


@router.post("/{order_id:int}/approve", response_model=schemas.StatusChanged)
def approve_order(
    order_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    order = transition_order(
        db, order_id, schemas.OrderStatus.PROCESSING, actor_id=current_admin["id"], reason="approved"
    )
    _publish_status_changed(order)
    return schemas.StatusChanged(message="Order approved", order_id=order.id, status=order.status)


@router.post("/{order_id:int}/reject", response_model=schemas.StatusChanged)
def reject_order(
    order_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    order = transition_order(
        db, order_id, schemas.OrderStatus.REJECTED, actor_id=current_admin["id"], reason="rejected"
    )
    _publish_status_changed(order)
    return schemas.StatusChanged(message="Order rejected", order_id=order.id, status=order.status)


@router.put("/{order_id:int}/cancel", response_model=schemas.StatusChanged)
def cancel_my_order(
    order_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel one of the caller's own orders while it is still recent."""
    order = cancel_order(db, order_id, user_id=current_user["id"])
    _publish_status_changed(order)
    return schemas.StatusChanged(message="Order cancelled", order_id=order.id, status=order.status)
