from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import ChatMessage, Conversation
from HealthChat.schemas.chat import (
    ChatMessageOut,
    ConversationDetailOut,
    ConversationListItemOut,
    ConversationListOut,
    ConversationOut,
    ConversationSummaryOut,
    PaginationOut,
)
from HealthChat.services.errors import ChatValidationError, NotFoundOrForbidden

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Assessment Conversation"
EMPTY_PREVIEW = "No messages yet"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def message_out(m: ChatMessage) -> ChatMessageOut:
    return ChatMessageOut(
        id=m.id,
        role=m.role,
        content=m.content,
        parent_message_id=m.parent_message_id,
        created_at=_iso(m.created_at),
        edited_at=_iso(m.edited_at),
    )


def conversation_out(conv: Conversation, message_count: int) -> ConversationOut:
    return ConversationOut(
        id=conv.id,
        user_id=conv.user_id,
        assessment_id=conv.assessment_id,
        assessment_object=conv.assessment_object,
        assessment_pattern=conv.assessment_pattern,
        title=conv.title or DEFAULT_TITLE,
        preview=conv.preview,
        created_at=_iso(conv.created_at),
        updated_at=_iso(conv.updated_at),
        message_count=message_count,
    )


# Read-side assembly of conversations; never writes
class ConversationReader:
    def __init__(self, db: Session):
        self.db = db

    def _load(self, conversation_id: str) -> Conversation:
        conv = store.get_conversation(self.db, conversation_id) if conversation_id else None
        if conv is None:
            raise NotFoundOrForbidden()
        return conv

    # Pagination is a slice over the fully ordered thread, not a database-level limit
    def get_conversation(
        self,
        conversation_id: str,
        *,
        include_messages: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> ConversationDetailOut:
        if limit is not None and limit < 1:
            raise ChatValidationError("limit must be a positive integer")
        if offset is None:
            offset = 0
        if offset < 0:
            raise ChatValidationError("offset cannot be negative")

        conv = self._load(conversation_id)

        page: list[ChatMessage] = []
        total = 0
        if include_messages:
            ordered = store.get_chat_history(self.db, conversation_id)
            total = len(ordered)
            end = offset + limit if limit is not None else None
            page = ordered[offset:end]
        else:
            total = store.count_messages(self.db, conversation_id)

        return ConversationDetailOut(
            conversation=conversation_out(conv, total),
            messages=[message_out(m) for m in page],
            pagination=PaginationOut(
                total=total,
                offset=offset,
                limit=limit,
                has_more=(offset + limit) < total if limit is not None else False,
            ),
        )

    # Ownership mismatch is indistinguishable from a missing conversation
    def get_conversation_for_user(
        self,
        conversation_id: str,
        user_id: str,
        *,
        include_messages: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> ConversationDetailOut:
        conv = self._load(conversation_id)
        if not user_id or conv.user_id != user_id:
            logger.warning("chat.read.denied: conv=%s user=%s", conversation_id, user_id)
            raise NotFoundOrForbidden()
        return self.get_conversation(conversation_id, include_messages=include_messages, limit=limit, offset=offset)

    def get_conversation_summary(self, conversation_id: str) -> ConversationSummaryOut:
        conv = self._load(conversation_id)
        count = store.count_messages(self.db, conversation_id)
        return ConversationSummaryOut(
            id=conv.id,
            user_id=conv.user_id,
            assessment_id=conv.assessment_id,
            title=conv.title or DEFAULT_TITLE,
            message_count=count,
            has_messages=count > 0,
            created_at=_iso(conv.created_at),
            updated_at=_iso(conv.updated_at),
        )

    def list_user_conversations(self, user_id: str) -> ConversationListOut:
        rows = store.list_user_conversations(self.db, user_id)
        return ConversationListOut(
            conversations=[
                ConversationListItemOut(
                    id=conv.id,
                    last_message_date=_iso(conv.updated_at),
                    preview=conv.preview if conv.preview is not None else EMPTY_PREVIEW,
                    message_count=count,
                    assessment_id=conv.assessment_id,
                    assessment_pattern=conv.assessment_pattern,
                    user_id=conv.user_id,
                )
                for conv, count in rows
            ]
        )
