from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import ChatMessage
from HealthChat.services.errors import ChatValidationError, NotFoundOrForbidden
from HealthChat.services.flow_pipeline import FlowState, FlowStep, run_steps
from HealthChat.services.preview import update_preview
from HealthChat.services.response_generator import ResponseGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditResult:
    conversation_id: str
    updated_message: ChatMessage
    new_response: Optional[ChatMessage]
    deleted_message_ids: list[str]
    flow_state: FlowState


class EditRegenerationFlow:
    """Edits a message and truncates the thread after it.

    Ownership is verified before anything is deleted. Once cleanup has
    committed, its deletions stay in effect even if the edit or the
    regeneration step fails afterwards.
    """

    def __init__(self, db: Session, *, generator: ResponseGenerator):
        self.db = db
        self.generator = generator

    def _require_owner(self, conversation_id: str, user_id: str) -> None:
        if not store.is_owner(self.db, conversation_id, user_id):
            raise NotFoundOrForbidden()

    def _get_message(self, conversation_id: str, message_id: str) -> ChatMessage:
        message = store.get_chat_message(self.db, conversation_id, message_id)
        if message is None:
            raise NotFoundOrForbidden("Message not found or access denied")
        return message

    # Deletes every other message with a strictly later created_at; returns their ids in thread order
    def cleanup_descendants(self, conversation_id: str, message_id: str) -> list[str]:
        edited = self._get_message(conversation_id, message_id)
        deleted: list[str] = []
        removed_assistant = False
        for message in store.get_messages_after(self.db, conversation_id, edited.created_at):
            if message.id == message_id:
                continue
            removed_assistant = removed_assistant or message.role == "assistant"
            deleted.append(message.id)
            store.delete_chat_message(self.db, message)

        # Keep the preview on the latest surviving assistant reply; it is never cleared
        if removed_assistant:
            survivor = store.get_latest_message_by_role(self.db, conversation_id, "assistant")
            if survivor is not None:
                update_preview(self.db, conversation_id, survivor.content)

        logger.info("chat.edit.cleanup: conv=%s msg=%s removed=%d", conversation_id, message_id, len(deleted))
        return deleted

    def _apply_edit(self, conversation_id: str, message_id: str, user_id: str, new_content: str) -> ChatMessage:
        self._require_owner(conversation_id, user_id)
        message = self._get_message(conversation_id, message_id)
        store.update_chat_message(self.db, message, content=new_content, edited_at=store._utcnow_naive())
        store.touch_conversation(self.db, conversation_id)
        logger.info("chat.edit.applied: conv=%s msg=%s", conversation_id, message_id)
        return message

    # Edits content in place; id, role and created_at are preserved
    async def edit_message(self, conversation_id: str, message_id: str, user_id: str, new_content: str) -> ChatMessage:
        if not isinstance(new_content, str) or not new_content.strip():
            raise ChatValidationError("Message content is required")

        async def _edit(st: FlowState) -> ChatMessage:
            return self._apply_edit(conversation_id, message_id, user_id, new_content)

        state = await run_steps(self.db, "edit_message", [FlowStep("edit", _edit)])
        return state.results["edit"]

    async def edit_with_regeneration(
        self,
        conversation_id: str,
        message_id: str,
        user_id: str,
        new_content: str,
        *,
        regenerate_response: bool = True,
    ) -> EditResult:
        if not isinstance(new_content, str) or not new_content.strip():
            raise ChatValidationError("Message content is required")
        self._require_owner(conversation_id, user_id)
        target = self._get_message(conversation_id, message_id)
        if target.role != "user":
            raise ChatValidationError("Only user messages can be edited")

        async def _cleanup(st: FlowState) -> list[str]:
            return self.cleanup_descendants(conversation_id, message_id)

        async def _edit(st: FlowState) -> ChatMessage:
            return self._apply_edit(conversation_id, message_id, user_id, new_content)

        async def _regenerate(st: FlowState) -> ChatMessage:
            return await self.generator.generate(conversation_id, user_id, message_id, new_content)

        steps = [FlowStep("cleanup", _cleanup), FlowStep("edit", _edit)]
        if regenerate_response:
            steps.append(FlowStep("regenerate", _regenerate))

        state = await run_steps(self.db, "edit_with_regeneration", steps)
        logger.info(
            "chat.edit.done: conv=%s msg=%s removed=%d regenerated=%s",
            conversation_id,
            message_id,
            len(state.results["cleanup"]),
            regenerate_response,
        )
        return EditResult(
            conversation_id=conversation_id,
            updated_message=state.results["edit"],
            new_response=state.results.get("regenerate"),
            deleted_message_ids=state.results["cleanup"],
            flow_state=state,
        )
