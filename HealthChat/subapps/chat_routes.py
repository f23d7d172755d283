from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from HealthChat.auth import current_user_id
from HealthChat.database import get_db
from HealthChat.schemas.chat import (
    ConversationDetailOut,
    ConversationListOut,
    ConversationSummaryOut,
    EditMessageOut,
    EditMessageRequest,
    SendMessageOut,
    SendMessageRequest,
)
from HealthChat.services.chat_service import ChatService


router = APIRouter(prefix="/chat")


def get_chat_service(db: Session = Depends(get_db)) -> ChatService:
    return ChatService(db)


# Sends a user message (starting a conversation when no conversation_id is given) and returns the reply
@router.post("/send")
async def send_message(
    payload: SendMessageRequest,
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> SendMessageOut:
    return await svc.send_message(
        user_id=user_id,
        message=payload.message,
        conversation_id=payload.conversation_id,
        assessment_id=payload.assessment_id,
    )


# Lists the caller's conversations with previews
@router.get("/history")
def get_history(
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> ConversationListOut:
    return svc.list_conversations(user_id=user_id)


# Retrieves one conversation with its ordered messages
@router.get("/history/{conversation_id}")
def get_conversation(
    conversation_id: str,
    limit: Optional[int] = Query(default=None),
    offset: int = Query(default=0),
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> ConversationDetailOut:
    return svc.get_conversation(conversation_id=conversation_id, user_id=user_id, limit=limit, offset=offset)


@router.get("/history/{conversation_id}/summary")
def get_conversation_summary(
    conversation_id: str,
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> ConversationSummaryOut:
    return svc.get_summary(conversation_id=conversation_id, user_id=user_id)


# Edits a user message, truncates the thread after it and optionally regenerates the reply
@router.patch("/history/{conversation_id}/messages/{message_id}")
async def edit_message(
    conversation_id: str,
    message_id: str,
    payload: EditMessageRequest,
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> EditMessageOut:
    return await svc.edit_message(
        conversation_id=conversation_id,
        message_id=message_id,
        user_id=user_id,
        content=payload.content,
        regenerate_response=payload.regenerate_response,
    )


@router.delete("/history/{conversation_id}")
def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(current_user_id),
    svc: ChatService = Depends(get_chat_service),
) -> dict:
    svc.delete_conversation(conversation_id=conversation_id, user_id=user_id)
    return {"message": "Conversation deleted successfully"}
