from datetime import datetime

from pydantic import BaseModel

from grownet.models.notification import NotificationKind


class NotificationRead(BaseModel):
    id: int
    user_id: int
    kind: NotificationKind
    message: str
    related_id: int
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    notifications: list[NotificationRead]
    count: int
    unread_count: int
