from grownet.models.user import User
from grownet.models.connection import Connection, ConnectionStatus
from grownet.models.conversation import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
)
from grownet.models.message import Message
from grownet.models.notification import Notification, NotificationKind

__all__ = [
    "User",
    "Connection",
    "ConnectionStatus",
    "Conversation",
    "ConversationKind",
    "ConversationParticipant",
    "Message",
    "Notification",
    "NotificationKind",
]
