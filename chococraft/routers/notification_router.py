from typing import Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import notifications, schemas
from ..auth import get_current_admin, get_current_user
from ..database import get_db

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.post("", response_model=schemas.NotificationOut, status_code=status.HTTP_201_CREATED)
def broadcast(
    body: schemas.NotificationCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    notification = notifications.create_broadcast(
        db,
        title=body.title,
        message=body.message,
        intended_for=body.intended_for,
        created_by=current_admin["id"],
    )
    return notifications.to_out(notification, current_admin["id"])


@router.get("", response_model=List[schemas.NotificationOut])
def list_notifications(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.list_for(db, current_user)


@router.post("/{notification_id:int}/read", response_model=schemas.MessageOut)
def mark_read(
    notification_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if notifications.mark_read(db, notification_id, current_user["id"]):
        return {"message": "Notification marked as read"}
    return {"message": "Notification already marked as read"}
