import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..config import settings
from ..errors import NotFound

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


def create_notification(
    db: Session,
    user_id: int,
    type: models.NotificationType,
    title: str,
    message: str,
    related_job_id: int | None = None,
) -> models.Notification:
    notification = models.Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_job_id=related_job_id,
        is_read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_with_retry(db: Session, **fields) -> models.Notification | None:
    """Insert a notification, retrying on storage errors.

    Returns None once every attempt has failed; the caller decides whether
    that matters.
    """
    attempts = max(1, settings.notification_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return create_notification(db, **fields)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Notification for user %s failed (attempt %d/%d): %s",
                fields.get("user_id"),
                attempt,
                attempts,
                exc,
            )
            if attempt < attempts:
                time.sleep(settings.notification_retry_delay_seconds)
    logger.error(
        "Giving up on %s notification for user %s (job %s)",
        fields.get("type"),
        fields.get("user_id"),
        fields.get("related_job_id"),
    )
    return None


def list_notifications(db: Session, user_id: int) -> tuple[list[models.Notification], int]:
    notifications = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(LIST_LIMIT)
        .all()
    )
    unread_count = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.is_read == False,  # noqa: E712
        )
        .count()
    )
    return notifications, unread_count


def _get_owned(db: Session, notification_id: int, user_id: int) -> models.Notification:
    notification = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id, models.Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFound("Notification not found")
    return notification


def mark_read(db: Session, notification_id: int, user_id: int) -> models.Notification:
    notification = _get_owned(db, notification_id, user_id)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.is_read == False,  # noqa: E712
        )
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, notification_id: int, user_id: int) -> None:
    notification = _get_owned(db, notification_id, user_id)
    db.delete(notification)
    db.commit()
