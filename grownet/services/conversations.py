import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from grownet.exceptions import InvalidOperation, NotFound
from grownet.models.conversation import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
)
from grownet.models.message import Message
from grownet.pairing import ordered_pair, pair_key

logger = logging.getLogger(__name__)


class ConversationStore:
    def __init__(self, db: Session):
        self.db = db

    def find_private(
        self, user_a: int, user_b: int, lock: bool = False
    ) -> Conversation | None:
        query = select(Conversation).where(
            Conversation.pair_key == pair_key(user_a, user_b)
        )
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def find_or_create_private(self, participant_ids: Sequence[int]) -> Conversation:
        """Return the private conversation between two users, creating it once.

        Parameters:
            participant_ids: Exactly two distinct user ids, in any order.

        Returns:
            The one conversation for the pair.

        Raises:
            InvalidOperation: If the ids are not two distinct users.
        """
        if len(participant_ids) != 2 or participant_ids[0] == participant_ids[1]:
            raise InvalidOperation(
                "A private conversation needs exactly two different participants."
            )
        user_a, user_b = participant_ids

        conversation = self.find_private(user_a, user_b)
        if conversation is not None:
            return conversation

        key = pair_key(user_a, user_b)
        try:
            with self.db.begin_nested():
                conversation = Conversation(
                    kind=ConversationKind.PRIVATE,
                    pair_key=key,
                    participants=[
                        ConversationParticipant(user_id=user_id)
                        for user_id in ordered_pair(user_a, user_b)
                    ],
                )
                self.db.add(conversation)
        except IntegrityError:
            logger.info("Private conversation %s created concurrently, reusing it", key)
            # Locking read so the row committed by the other writer is visible.
            existing = self.find_private(user_a, user_b, lock=True)
            if existing is None:
                raise
            return existing

        logger.info("Created private conversation %s for pair %s", conversation.id, key)
        return conversation

    def list_for_user(self, user_id: int) -> list[Conversation]:
        return self.db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(ConversationParticipant.user_id == user_id)
            .order_by(
                func.coalesce(
                    Conversation.last_message_at, Conversation.created_at
                ).desc(),
                Conversation.id.desc(),
            )
        ).scalars().all()

    def get_for_participant(self, conversation_id: int, user_id: int) -> Conversation:
        conversation: Conversation | None = self.db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(
                Conversation.id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        ).scalar_one_or_none()
        if conversation is None:
            raise NotFound("Conversation not found.")
        return conversation

    def add_message(
        self, conversation: Conversation, sender_id: int, content: str
    ) -> Message:
        message = Message(
            conversation_id=conversation.id, sender_id=sender_id, content=content
        )
        self.db.add(message)
        conversation.last_message_at = datetime.now(timezone.utc)
        self.db.flush()
        return message

    def list_messages(self, conversation_id: int, limit: int) -> list[Message]:
        """Return the newest ``limit`` messages, oldest first."""
        newest: list[Message] = self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        ).scalars().all()
        return list(reversed(newest))

    def _participant(self, conversation_id: int, user_id: int) -> ConversationParticipant:
        participant: ConversationParticipant | None = self.db.execute(
            select(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        ).scalar_one_or_none()
        if participant is None:
            raise NotFound("Conversation not found.")
        return participant

    def mark_read(self, conversation_id: int, user_id: int) -> Conversation:
        """Mark every message currently in the conversation as read by the user.

        Raises:
            NotFound: If the user is not a participant.
        """
        participant = self._participant(conversation_id, user_id)
        newest_id: int | None = self.db.execute(
            select(func.max(Message.id)).where(
                Message.conversation_id == conversation_id
            )
        ).scalar_one()
        if newest_id is not None:
            participant.last_read_message_id = newest_id
        participant.last_read_at = datetime.now(timezone.utc)
        self.db.flush()
        return self.get_for_participant(conversation_id, user_id)

    def unread_count(self, conversation_id: int, user_id: int) -> int:
        """Count messages from other participants the user has not read yet."""
        participant = self._participant(conversation_id, user_id)
        return self.db.execute(
            select(func.count())
            .select_from(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
                Message.id > (participant.last_read_message_id or 0),
            )
        ).scalar_one()
