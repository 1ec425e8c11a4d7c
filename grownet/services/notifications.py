import logging

from sqlalchemy.orm import Session

from grownet.models.notification import Notification, NotificationKind
from grownet.schemas.notification import NotificationRead

logger = logging.getLogger(__name__)


class NotificationSink:
    """Stores notifications and pushes them to the addressee if online."""

    def __init__(self, db: Session, push=None):
        self.db = db
        self.push = push

    def create(
        self,
        target_user_id: int,
        kind: NotificationKind,
        message: str,
        related_id: int,
    ) -> Notification:
        # Savepoint so a failed insert never takes the caller's changes with it.
        with self.db.begin_nested():
            notification = Notification(
                user_id=target_user_id,
                kind=kind,
                message=message,
                related_id=related_id,
            )
            self.db.add(notification)

        self._deliver(notification)
        return notification

    def _deliver(self, notification: Notification) -> None:
        if self.push is None:
            return
        try:
            payload = NotificationRead.model_validate(notification).model_dump(
                mode="json"
            )
            self.push.emit_to_user(
                notification.user_id, "notification:new", payload
            )
        except Exception:
            logger.exception(
                "Failed to push notification %s to user %s",
                notification.id,
                notification.user_id,
            )
