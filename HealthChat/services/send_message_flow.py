from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import ChatMessage, Conversation
from HealthChat.services.errors import ChatValidationError, NotFoundOrForbidden
from HealthChat.services.flow_pipeline import FlowState, FlowStep, run_steps
from HealthChat.services.parent_linker import verify_parent_message_id
from HealthChat.services.response_generator import ResponseGenerator

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = (
    "id",
    "user_id",
    "age",
    "pattern",
    "cycle_length",
    "period_duration",
    "flow_heaviness",
    "pain_level",
    "physical_symptoms",
    "emotional_symptoms",
    "other_symptoms",
    "recommendations",
    "created_at",
    "updated_at",
)
_LIST_FIELDS = ("physical_symptoms", "emotional_symptoms", "recommendations")


@dataclass(frozen=True)
class SendMessageResult:
    conversation_id: str
    user_message: ChatMessage
    assistant_message: ChatMessage
    flow_state: FlowState


def _require_text(value: Optional[str], detail: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ChatValidationError(detail)
    return value


# Point-in-time copy of an assessment row, JSON-safe for the conversation's assessment_object column
def snapshot_assessment(assessment) -> dict:
    snapshot: dict = {}
    for name in _SNAPSHOT_FIELDS:
        value = getattr(assessment, name, None)
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        if name in _LIST_FIELDS and value is None:
            value = []
        snapshot[name] = value
    return snapshot


class SendMessageFlow:
    """One call appends exactly one user message and one assistant reply.

    With no conversation id a conversation is started first; it is created
    together with the user message so callers never issue a separate create.
    """

    def __init__(self, db: Session, *, generator: ResponseGenerator):
        self.db = db
        self.generator = generator

    def _load_snapshot(self, user_id: str, assessment_id: str) -> tuple[Optional[dict], Optional[str]]:
        assessment = store.get_assessment(self.db, assessment_id)
        if assessment is None:
            logger.warning("chat.assessment.missing: assessment=%s; starting conversation without snapshot", assessment_id)
            return None, None
        if assessment.user_id != user_id:
            raise ChatValidationError("Assessment not found")
        snapshot = snapshot_assessment(assessment)
        return snapshot, snapshot.get("pattern")

    # Reuses the trailing user message when a previous attempt stored it but never got a reply
    def _pending_user_message(self, conversation_id: str, text: str) -> Optional[ChatMessage]:
        latest = store.get_most_recent_message(self.db, conversation_id)
        if latest is not None and latest.role == "user" and latest.content == text:
            return latest
        return None

    def _insert_user_message(self, conversation_id: str, text: str, parent_message_id: Optional[str] = None) -> ChatMessage:
        pending = self._pending_user_message(conversation_id, text)
        if pending is not None:
            logger.info("chat.send.resume: conv=%s msg=%s", conversation_id, pending.id)
            return pending

        record = verify_parent_message_id(self.db, conversation_id, {"parent_message_id": parent_message_id})
        msg = store.create_chat_message(self.db, conversation_id, "user", text, parent_message_id=record["parent_message_id"])
        store.touch_conversation(self.db, conversation_id)
        return msg

    async def send(
        self,
        *,
        user_id: str,
        text: str,
        conversation_id: Optional[str] = None,
        assessment_id: Optional[str] = None,
        parent_message_id: Optional[str] = None,
    ) -> SendMessageResult:
        _require_text(user_id, "User identification is required")
        _require_text(text, "Message is required")
        if conversation_id is not None and not conversation_id.strip():
            raise ChatValidationError("conversation_id cannot be empty string")

        logger.info("chat.send.start: user=%s conv=%s assessment=%s", user_id, conversation_id, assessment_id)
        state = FlowState(flow="send_message")

        if conversation_id:
            if not store.is_owner(self.db, conversation_id, user_id):
                raise NotFoundOrForbidden()
            state.results["conversation_id"] = conversation_id

            async def _user_message(st: FlowState) -> ChatMessage:
                return self._insert_user_message(conversation_id, text, parent_message_id)

            first = FlowStep("user_message", _user_message)
        else:
            _require_text(assessment_id, "assessment_id is required to start a conversation")
            snapshot, pattern = self._load_snapshot(user_id, assessment_id)

            async def _start_conversation(st: FlowState) -> ChatMessage:
                conv: Conversation = store.create_conversation(
                    self.db,
                    user_id,
                    assessment_id,
                    assessment_object=snapshot,
                    assessment_pattern=pattern,
                )
                st.results["conversation_id"] = conv.id
                logger.info("chat.conversation.created: conv=%s assessment=%s", conv.id, assessment_id)
                return self._insert_user_message(conv.id, text)

            first = FlowStep("user_message", _start_conversation)

        async def _assistant_message(st: FlowState) -> ChatMessage:
            user_msg: ChatMessage = st.results["user_message"]
            return await self.generator.generate(st.results["conversation_id"], user_id, user_msg.id, text)

        await run_steps(self.db, state.flow, [first, FlowStep("assistant_message", _assistant_message)], state)

        result = SendMessageResult(
            conversation_id=state.results["conversation_id"],
            user_message=state.results["user_message"],
            assistant_message=state.results["assistant_message"],
            flow_state=state,
        )
        logger.info(
            "chat.send.done: conv=%s user_msg=%s assistant_msg=%s",
            result.conversation_id,
            result.user_message.id,
            result.assistant_message.id,
        )
        return result
