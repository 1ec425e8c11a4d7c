import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from grownet.config import settings
from grownet.exceptions import (
    AlreadyConnected,
    ConcurrentUpdate,
    DuplicateRequest,
    InvalidOperation,
    NotFound,
)
from grownet.models.connection import Connection, ConnectionStatus
from grownet.models.conversation import Conversation
from grownet.models.notification import NotificationKind
from grownet.models.user import User
from grownet.pairing import ordered_pair
from grownet.services.conversations import ConversationStore
from grownet.services.directory import UserDirectory
from grownet.services.notifications import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    connection: Connection
    matched: bool
    conversation: Conversation | None = None


class ConnectionMatchEngine:
    """Owns the lifecycle of the connection between two users.

    A pair of users has at most one ``Connection`` row, enforced by the
    unique (low, high) pair key. Lifecycle::

        (none) --send_request--> pending --accept / reciprocal request--> accepted
        pending --reject--> (none)
        accepted --remove_friend--> (none)

    Every transition into ``accepted`` provisions the pair's private
    conversation. Notifications and realtime pushes are best effort: a
    failure is logged and never undoes the state change.
    """

    def __init__(
        self,
        db: Session,
        users: UserDirectory,
        conversations: ConversationStore,
        notifications: NotificationSink,
        push=None,
        retry_attempts: int | None = None,
    ):
        self.db = db
        self.users = users
        self.conversations = conversations
        self.notifications = notifications
        self.push = push
        if retry_attempts is None:
            retry_attempts = settings.connection_retry_attempts
        self.retry_attempts = retry_attempts

    def send_request(self, actor_id: int, target_id: int) -> MatchResult:
        """Ask to connect with another user, matching if they already asked.

        Parameters:
            actor_id: The user sending the request.
            target_id: The user being asked.

        Returns:
            ``matched=False`` with a new pending connection, or
            ``matched=True`` with the accepted connection and its
            conversation when the target had already asked the actor.

        Raises:
            InvalidOperation: If actor and target are the same user.
            NotFound: If the target does not exist.
            DuplicateRequest: If the actor already has a pending request out.
            AlreadyConnected: If the pair is already connected.
            ConcurrentUpdate: If the pair kept changing across every retry.
        """
        if actor_id == target_id:
            raise InvalidOperation("Cannot send a connection request to yourself.")
        if self.users.find_by_id(target_id) is None:
            raise NotFound("User not found.")

        lock = False
        for _ in range(self.retry_attempts):
            existing = self._find_pair(actor_id, target_id, lock=lock)
            if existing is not None:
                return self._resolve_existing(existing, actor_id, target_id)

            connection = self._insert_pending(actor_id, target_id)
            if connection is not None:
                logger.info(
                    "Connection %s: %s requested %s",
                    connection.id,
                    actor_id,
                    target_id,
                )
                self._notify(
                    target_id,
                    f"{self._display_name(actor_id)} sent you a connection request",
                    connection.id,
                )
                return MatchResult(connection=connection, matched=False)

            logger.info(
                "Insert for pair %s/%s lost a race, re-reading", actor_id, target_id
            )
            # Locking read so the row committed by the other writer is visible.
            lock = True

        raise ConcurrentUpdate()

    def accept_request(self, actor_id: int, connection_id: int) -> MatchResult:
        """Accept a pending request addressed to the actor.

        Raises:
            NotFound: If there is no pending request with that id for the actor.
        """
        connection = self._find_incoming_pending(actor_id, connection_id)
        if connection is None:
            raise NotFound("Connection request not found.")
        return self._match(
            connection,
            f"{self._display_name(actor_id)} accepted your connection request",
        )

    def reject_request(self, actor_id: int, connection_id: int) -> None:
        """Delete a pending request addressed to the actor. The requester is not told.

        Raises:
            NotFound: If there is no pending request with that id for the actor.
        """
        connection = self._find_incoming_pending(actor_id, connection_id)
        if connection is None:
            raise NotFound("Connection request not found.")
        self.db.delete(connection)
        self.db.flush()
        logger.info("Connection %s: rejected by %s", connection_id, actor_id)

    def remove_friend(self, actor_id: int, other_id: int) -> None:
        """Delete the accepted connection between the actor and another user.

        The pair's conversation and its messages are left in place.

        Raises:
            NotFound: If the two users are not connected.
        """
        connection = self._find_pair(actor_id, other_id)
        if connection is None or connection.status != ConnectionStatus.ACCEPTED:
            raise NotFound("Friendship not found.")
        self.db.delete(connection)
        self.db.flush()
        logger.info(
            "Connection %s: %s removed %s", connection.id, actor_id, other_id
        )

    def list_friends(self, actor_id: int) -> list[User]:
        connections: list[Connection] = self.db.execute(
            select(Connection)
            .where(
                Connection.status == ConnectionStatus.ACCEPTED,
                or_(
                    Connection.requester_id == actor_id,
                    Connection.receiver_id == actor_id,
                ),
            )
            .order_by(Connection.updated_at.desc(), Connection.id.desc())
        ).scalars().all()
        return self.users.find_many(c.other_party(actor_id) for c in connections)

    def list_pending_incoming(self, actor_id: int) -> list[Connection]:
        return self.db.execute(
            select(Connection)
            .where(
                Connection.status == ConnectionStatus.PENDING,
                Connection.receiver_id == actor_id,
            )
            .order_by(Connection.created_at.desc(), Connection.id.desc())
        ).scalars().all()

    def _find_pair(
        self, user_a: int, user_b: int, lock: bool = False
    ) -> Connection | None:
        low, high = ordered_pair(user_a, user_b)
        query = select(Connection).where(
            Connection.user_low_id == low, Connection.user_high_id == high
        )
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def _find_incoming_pending(
        self, actor_id: int, connection_id: int
    ) -> Connection | None:
        # Locked so a concurrent accept or reject of the same row waits.
        return self.db.execute(
            select(Connection)
            .where(
                Connection.id == connection_id,
                Connection.receiver_id == actor_id,
                Connection.status == ConnectionStatus.PENDING,
            )
            .with_for_update()
        ).scalar_one_or_none()

    def _insert_pending(self, actor_id: int, target_id: int) -> Connection | None:
        """Insert a pending connection, or return None if the pair already exists."""
        try:
            with self.db.begin_nested():
                connection = Connection(
                    requester_id=actor_id,
                    receiver_id=target_id,
                    status=ConnectionStatus.PENDING,
                )
                self.db.add(connection)
        except IntegrityError:
            return None
        return connection

    def _resolve_existing(
        self, existing: Connection, actor_id: int, target_id: int
    ) -> MatchResult:
        if existing.status == ConnectionStatus.PENDING:
            if existing.requester_id == actor_id:
                raise DuplicateRequest()
            if existing.requester_id == target_id:
                logger.info(
                    "Connection %s: reciprocal request from %s, matching",
                    existing.id,
                    actor_id,
                )
                return self._match(
                    existing,
                    f"You and {self._display_name(actor_id)} are now connected",
                )
        raise AlreadyConnected()

    def _match(self, connection: Connection, message: str) -> MatchResult:
        connection.status = ConnectionStatus.ACCEPTED
        connection.accepted_at = datetime.now(timezone.utc)
        self.db.flush()
        logger.info("Connection %s: accepted", connection.id)

        conversation = self.conversations.find_or_create_private(
            [connection.requester_id, connection.receiver_id]
        )

        self._notify(connection.requester_id, message, connection.id)
        payload = {"connection_id": connection.id, "conversation_id": conversation.id}
        for user_id in (connection.requester_id, connection.receiver_id):
            self._emit(user_id, "connection:matched", payload)

        return MatchResult(
            connection=connection, matched=True, conversation=conversation
        )

    def _display_name(self, user_id: int) -> str:
        user = self.users.find_by_id(user_id)
        return user.name if user is not None else "Someone"

    def _notify(self, user_id: int, message: str, connection_id: int) -> None:
        try:
            self.notifications.create(
                user_id, NotificationKind.CONNECTION, message, connection_id
            )
        except Exception:
            logger.exception(
                "Failed to notify user %s about connection %s", user_id, connection_id
            )

    def _emit(self, user_id: int, event: str, payload: dict) -> None:
        if self.push is None:
            return
        try:
            self.push.emit_to_user(user_id, event, payload)
        except Exception:
            logger.exception("Failed to push %s to user %s", event, user_id)
