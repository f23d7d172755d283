from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# Request body for sending a chat message (new conversation when conversation_id is omitted)
class SendMessageRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    message: Optional[str] = None
    conversation_id: Optional[str] = None
    assessment_id: Optional[str] = None


# Response payload for a sent message: the assistant reply and the conversation it landed in
class SendMessageOut(BaseModel):
    message: str
    conversation_id: str


# Request body for editing a user message
class EditMessageRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    content: Optional[str] = None
    regenerate_response: bool = True


# Single chat message as returned to clients
class ChatMessageOut(BaseModel):
    id: str
    role: str
    content: str
    parent_message_id: Optional[str] = None
    created_at: Optional[str] = None
    edited_at: Optional[str] = None


class EditMessageOut(BaseModel):
    conversation_id: str
    updated_message: ChatMessageOut
    new_response: Optional[ChatMessageOut] = None
    deleted_message_ids: List[str] = Field(default_factory=list)


class PaginationOut(BaseModel):
    total: int
    offset: int = 0
    limit: Optional[int] = None
    has_more: bool = False


# Conversation header with the derived message count
class ConversationOut(BaseModel):
    id: str
    user_id: str
    assessment_id: str
    assessment_object: Optional[Any] = None
    assessment_pattern: Optional[str] = None
    title: str
    preview: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    message_count: int = 0


# Full read of a conversation: header, (paginated) messages and pagination info
class ConversationDetailOut(BaseModel):
    conversation: ConversationOut
    messages: List[ChatMessageOut] = Field(default_factory=list)
    pagination: PaginationOut


# Lighter projection for list views, no message bodies
class ConversationSummaryOut(BaseModel):
    id: str
    user_id: str
    assessment_id: str
    title: str
    message_count: int
    has_messages: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Row in a user's conversation history list
class ConversationListItemOut(BaseModel):
    id: str
    last_message_date: Optional[str] = None
    preview: str
    message_count: int
    assessment_id: str
    assessment_pattern: Optional[str] = None
    user_id: str


class ConversationListOut(BaseModel):
    conversations: List[ConversationListItemOut]
