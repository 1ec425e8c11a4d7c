import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from grownet.database import Base


class NotificationKind(str, enum.Enum):
    LIKE = "like"
    COMMENT = "comment"
    CONNECTION = "connection"
    MESSAGE = "message"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    kind: Mapped[NotificationKind] = mapped_column(
        Enum(
            NotificationKind,
            native_enum=False,
            length=20,
            values_callable=lambda kinds: [k.value for k in kinds],
        )
    )
    message: Mapped[str] = mapped_column(String(500))
    related_id: Mapped[int] = mapped_column()
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
