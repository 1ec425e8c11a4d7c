from datetime import datetime

from pydantic import BaseModel, Field

from grownet.models.conversation import ConversationKind


class ConversationRead(BaseModel):
    id: int
    kind: ConversationKind
    name: str | None
    participant_ids: list[int]
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime
    unread_count: int = 0

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}
