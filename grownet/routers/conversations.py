from fastapi import APIRouter, Query, status

from grownet.config import settings
from grownet.dependencies import DbSession, MessagingUser, Outbox, require_connection
from grownet.exceptions import NotFound
from grownet.models.conversation import Conversation
from grownet.schemas.conversation import ConversationRead, MessageCreate, MessageRead
from grownet.services.conversations import ConversationStore
from grownet.services.directory import UserDirectory

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _build_response(
    conversation: Conversation, current_user_id: int, store: ConversationStore
) -> dict:
    """Serialize a conversation with the current user's unread count."""
    data = ConversationRead.model_validate(conversation).model_dump()
    data["unread_count"] = store.unread_count(conversation.id, current_user_id)
    return data


@router.get("", response_model=list[ConversationRead])
def list_conversations(user: MessagingUser, db: DbSession) -> list[dict]:
    store = ConversationStore(db)
    return [_build_response(c, user.id, store) for c in store.list_for_user(user.id)]


@router.post("/private/{user_id}", response_model=ConversationRead)
def open_private_conversation(user_id: int, user: MessagingUser, db: DbSession) -> dict:
    """Get or create the private conversation with a connected user.

    Raises:
        NotFound: 404 if the user does not exist.
        Forbidden: 403 if the two users are not connected.
    """
    if UserDirectory(db).find_by_id(user_id) is None:
        raise NotFound("User not found.")
    require_connection(user_id, user, db)
    store = ConversationStore(db)
    conversation = store.find_or_create_private([user.id, user_id])
    return _build_response(conversation, user.id, store)


@router.put("/{conversation_id}/read", response_model=ConversationRead)
def mark_read(conversation_id: int, user: MessagingUser, db: DbSession) -> dict:
    """Mark the conversation's messages as read for the current user only."""
    store = ConversationStore(db)
    conversation = store.mark_read(conversation_id, user.id)
    return _build_response(conversation, user.id, store)


@router.get("/{conversation_id}/messages", response_model=list[MessageRead])
def list_messages(
    conversation_id: int,
    user: MessagingUser,
    db: DbSession,
    limit: int = Query(default=settings.message_page_size, ge=1, le=200),
):
    store = ConversationStore(db)
    conversation = store.get_for_participant(conversation_id, user.id)
    return store.list_messages(conversation.id, limit)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: int,
    request: MessageCreate,
    user: MessagingUser,
    db: DbSession,
    outbox: Outbox,
):
    store = ConversationStore(db)
    conversation = store.get_for_participant(conversation_id, user.id)
    message = store.add_message(conversation, user.id, request.content)

    payload = MessageRead.model_validate(message).model_dump(mode="json")
    for participant_id in conversation.participant_ids:
        if participant_id != user.id:
            outbox.emit_to_user(participant_id, "message:new", payload)
    return message
