from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import MessageContext, MessageType


class ParticipantRead(BaseModel):
    user_id: int
    last_read_message_id: Optional[int] = None
    last_read_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConversationRead(BaseModel):
    id: int
    booking_id: int
    participants: List[ParticipantRead] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConversationCreate(BaseModel):
    booking_id: int


class AttachmentRead(BaseModel):
    id: int
    original_name: str
    mime_type: str
    size: int

    model_config = ConfigDict(from_attributes=True)


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    body: Optional[str] = None
    type: MessageType
    context: MessageContext
    attachments: List[AttachmentRead] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MessagesMeta(BaseModel):
    next_cursor: Optional[int] = Field(None, description="Pass as ?cursor= to load older messages")
    per_page: int
    unread_count: int


class MessagesResponse(BaseModel):
    messages: List[MessageRead]
    meta: MessagesMeta


class ConversationListItem(BaseModel):
    id: int
    booking_id: int
    other_user_id: Optional[int] = None
    other_user_name: Optional[str] = None
    last_message: Optional[MessageRead] = None
    unread_count: int = 0
    updated_at: Optional[datetime] = None


class ConversationListResponse(BaseModel):
    conversations: List[ConversationListItem]
    total: int
    page: int
    per_page: int


class MarkReadRequest(BaseModel):
    message_id: Optional[int] = Field(None, description="Defaults to the newest message in the conversation")


class ReadStateResponse(BaseModel):
    conversation_id: int
    last_read_message_id: Optional[int] = None
    unread_count: int
