from fastapi import APIRouter, Query, status
from sqlalchemy import func, select, update

from grownet.config import settings
from grownet.dependencies import CurrentUser, DbSession
from grownet.exceptions import NotFound
from grownet.models.notification import Notification
from grownet.schemas.notification import NotificationPage, NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _get_own_notification(notification_id: int, user_id: int, db) -> Notification:
    notification: Notification | None = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification not found.")
    return notification


@router.get("", response_model=NotificationPage)
def list_notifications(
    user: CurrentUser,
    db: DbSession,
    limit: int = Query(default=settings.notification_page_size, ge=1, le=100),
) -> dict:
    """List the current user's notifications, newest first, with the unread total."""
    notifications: list[Notification] = db.execute(
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    ).scalars().all()
    unread_count: int = db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user.id, Notification.read.is_(False))
    ).scalar_one()
    return {
        "notifications": notifications,
        "count": len(notifications),
        "unread_count": unread_count,
    }


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
def mark_all_read(user: CurrentUser, db: DbSession) -> None:
    db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.read.is_(False))
        .values(read=True)
    )
    db.flush()


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, user: CurrentUser, db: DbSession):
    notification = _get_own_notification(notification_id, user.id, db)
    notification.read = True
    db.flush()
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: int, user: CurrentUser, db: DbSession) -> None:
    notification = _get_own_notification(notification_id, user.id, db)
    db.delete(notification)
    db.flush()
