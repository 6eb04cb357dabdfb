from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.ApiResponse[schemas.NotificationListData])
def list_notifications(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    rows, unread_count = notifications.list_notifications(db, identity.id)
    return {
        "success": True,
        "message": "Notifications retrieved successfully",
        "data": {"notifications": rows, "unread_count": unread_count},
    }


# Declared before /{notification_id}/read so "read-all" is not parsed as an id.
@router.put("/read-all", response_model=schemas.ApiResponse[None])
def mark_all_read(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    notifications.mark_all_read(db, identity.id)
    return {"success": True, "message": "All notifications marked as read"}


@router.put("/{notification_id}/read", response_model=schemas.ApiResponse[None])
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    notifications.mark_read(db, notification_id, identity.id)
    return {"success": True, "message": "Notification marked as read"}


@router.delete("/{notification_id}", response_model=schemas.ApiResponse[None])
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    notifications.delete_notification(db, notification_id, identity.id)
    return {"success": True, "message": "Notification deleted successfully"}
