from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.schemas.chat import (
    ConversationDetailOut,
    ConversationListOut,
    ConversationSummaryOut,
    EditMessageOut,
    SendMessageOut,
)
from HealthChat.services.chat_settings import ChatSettings, get_chat_settings
from HealthChat.services.conversation_reader import ConversationReader, message_out
from HealthChat.services.edit_flow import EditRegenerationFlow, EditResult
from HealthChat.services.errors import NotFoundOrForbidden, PersistenceFailure
from HealthChat.services.response_generator import ResponseGenerator
from HealthChat.services.send_message_flow import SendMessageFlow, SendMessageResult

logger = logging.getLogger(__name__)


class ChatService:
    # Wires the flows around one request-scoped DB session; provider mode comes from process settings
    def __init__(
        self,
        db: Session,
        *,
        settings: Optional[ChatSettings] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.settings = settings or get_chat_settings()
        self.generator = ResponseGenerator(db, settings=self.settings, client_factory=client_factory, rng=rng)
        self.sender = SendMessageFlow(db, generator=self.generator)
        self.editor = EditRegenerationFlow(db, generator=self.generator)
        self.reader = ConversationReader(db)

    def _read(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("chat.read.error")
            raise PersistenceFailure("Failed to read conversation data") from e

    async def send(self, *, user_id: str, message: Optional[str], conversation_id: Optional[str] = None, assessment_id: Optional[str] = None) -> SendMessageResult:
        try:
            return await self.sender.send(
                user_id=user_id,
                text=message,
                conversation_id=conversation_id,
                assessment_id=assessment_id,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("chat.send.error: conv=%s", conversation_id)
            raise PersistenceFailure("Failed to process message") from e

    async def send_message(self, *, user_id: str, message: Optional[str], conversation_id: Optional[str] = None, assessment_id: Optional[str] = None) -> SendMessageOut:
        result = await self.send(user_id=user_id, message=message, conversation_id=conversation_id, assessment_id=assessment_id)
        return SendMessageOut(message=result.assistant_message.content, conversation_id=result.conversation_id)

    async def edit(self, *, conversation_id: str, message_id: str, user_id: str, content: Optional[str], regenerate_response: bool = True) -> EditResult:
        try:
            return await self.editor.edit_with_regeneration(
                conversation_id,
                message_id,
                user_id,
                content,
                regenerate_response=regenerate_response,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("chat.edit.error: conv=%s msg=%s", conversation_id, message_id)
            raise PersistenceFailure("Failed to edit message") from e

    async def edit_message(self, *, conversation_id: str, message_id: str, user_id: str, content: Optional[str], regenerate_response: bool = True) -> EditMessageOut:
        result = await self.edit(
            conversation_id=conversation_id,
            message_id=message_id,
            user_id=user_id,
            content=content,
            regenerate_response=regenerate_response,
        )
        return EditMessageOut(
            conversation_id=result.conversation_id,
            updated_message=message_out(result.updated_message),
            new_response=message_out(result.new_response) if result.new_response is not None else None,
            deleted_message_ids=result.deleted_message_ids,
        )

    def get_conversation(self, *, conversation_id: str, user_id: str, limit: Optional[int] = None, offset: int = 0) -> ConversationDetailOut:
        return self._read(self.reader.get_conversation_for_user, conversation_id, user_id, limit=limit, offset=offset)

    def get_summary(self, *, conversation_id: str, user_id: str) -> ConversationSummaryOut:
        if not self._read(store.is_owner, self.db, conversation_id, user_id):
            raise NotFoundOrForbidden()
        return self._read(self.reader.get_conversation_summary, conversation_id)

    def list_conversations(self, *, user_id: str) -> ConversationListOut:
        return self._read(self.reader.list_user_conversations, user_id)

    # Deletes a conversation and all of its messages
    def delete_conversation(self, *, conversation_id: str, user_id: str) -> int:
        if not self._read(store.is_owner, self.db, conversation_id, user_id):
            raise NotFoundOrForbidden()
        try:
            removed = store.delete_conversation(self.db, conversation_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("chat.delete.error: conv=%s", conversation_id)
            raise PersistenceFailure("Failed to delete conversation") from e
        logger.info("chat.conversation.deleted: conv=%s messages=%d", conversation_id, removed)
        return removed
