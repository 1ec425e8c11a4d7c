from datetime import datetime

from pydantic import BaseModel

from grownet.models.connection import ConnectionStatus
from grownet.schemas.conversation import ConversationRead
from grownet.schemas.user import UserSummary


class ConnectionRead(BaseModel):
    id: int
    requester_id: int
    receiver_id: int
    status: ConnectionStatus
    user: UserSummary | None
    created_at: datetime
    updated_at: datetime
    accepted_at: datetime | None


class MatchRead(BaseModel):
    """Outcome of a request or accept: the connection and, on match, the chat."""

    connection: ConnectionRead
    matched: bool
    conversation: ConversationRead | None = None
