import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grownet.database import Base


class ConversationKind(str, enum.Enum):
    PRIVATE = "private"
    GROUP = "group"


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[ConversationKind] = mapped_column(
        Enum(
            ConversationKind,
            native_enum=False,
            length=20,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        default=ConversationKind.PRIVATE,
    )
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    # "<low>:<high>" for private conversations, NULL for groups.
    pair_key: Mapped[str | None] = mapped_column(
        String(64), unique=True, default=None
    )
    last_message_at: Mapped[datetime | None] = mapped_column(default=None)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant", lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def participant_ids(self) -> list[int]:
        return sorted(p.user_id for p in self.participants)


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "user_id", name="uq_conversation_participants_user"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    # Newest message this participant has seen; later messages from others are unread.
    last_read_message_id: Mapped[int | None] = mapped_column(default=None)
    last_read_at: Mapped[datetime | None] = mapped_column(default=None)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
