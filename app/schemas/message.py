import uuid
from datetime import datetime

from app.schemas.base import CamelModel
from app.schemas.user import PublicUser


class DirectMessageCreate(CamelModel):
    recipient_id: uuid.UUID
    # Length rules live in the service so they map onto the 400 taxonomy
    content: str


class DirectMessageResponse(CamelModel):
    id: uuid.UUID
    conversation_id: str
    sender: PublicUser
    content: str
    read: bool
    created_at: datetime


class DirectMessageEnvelope(CamelModel):
    message: DirectMessageResponse


class LastMessage(CamelModel):
    content: str
    sender: uuid.UUID
    created_at: datetime
    read: bool


class ConversationSummary(CamelModel):
    conversation_id: str
    other_user: PublicUser | None
    last_message: LastMessage
    unread_count: int


class ConversationList(CamelModel):
    conversations: list[ConversationSummary]


class ConversationPage(CamelModel):
    messages: list[DirectMessageResponse]
    other_user: PublicUser | None
    has_more: bool


class MarkReadResponse(CamelModel):
    message: str
    count: int
