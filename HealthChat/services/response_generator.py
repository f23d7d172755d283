from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import ChatMessage
from HealthChat.services.chat_settings import MODE_AI, ChatSettings
from HealthChat.services.errors import NotFoundOrForbidden, ProviderFailure
from HealthChat.services.mock_responses import get_mock_response
from HealthChat.services.openai_compatible_client import get_async_openai_compatible_client
from HealthChat.services.parent_linker import verify_parent_message_id
from HealthChat.services.preview import update_preview

logger = logging.getLogger(__name__)

_BASE_PROMPT = (
    "You are a helpful conversation partner specializing in menstrual health and wellness. "
    "Be empathetic and insightful, and encourage deeper exploration of health topics. "
    "You are not a doctor: recommend a healthcare provider for anything severe or persistent."
)


def _join(values: Any) -> str:
    if isinstance(values, (list, tuple)) and values:
        return ", ".join(str(v) for v in values)
    return "none reported"


# System prompt grounded in the assessment snapshot stored on the conversation
def build_system_prompt(assessment: Optional[dict]) -> str:
    if not isinstance(assessment, dict) or not assessment:
        return _BASE_PROMPT
    return (
        f"{_BASE_PROMPT}\n\n"
        "The user has completed a menstrual health assessment with the following results:\n"
        f"- Pattern: {assessment.get('pattern') or 'unknown'}\n"
        f"- Cycle length: {assessment.get('cycle_length') or 'unknown'} days\n"
        f"- Period duration: {assessment.get('period_duration') or 'unknown'} days\n"
        f"- Flow: {assessment.get('flow_heaviness') or 'unknown'}\n"
        f"- Pain level: {assessment.get('pain_level') if assessment.get('pain_level') is not None else 'unknown'}/10\n"
        f"- Physical symptoms: {_join(assessment.get('physical_symptoms'))}\n"
        f"- Emotional symptoms: {_join(assessment.get('emotional_symptoms'))}\n\n"
        "Help them understand their results and what these patterns mean for their health and wellbeing."
    )


# Maps stored messages preceding `parent_id` into provider turns, then appends the new input
def build_turns(history: list[ChatMessage], parent_id: Optional[str], text: str, assessment: Optional[dict] = None) -> list[dict]:
    turns: list[dict] = [{"role": "system", "content": build_system_prompt(assessment)}]
    for m in history:
        if m.id == parent_id:
            break
        if not isinstance(m.content, str) or not m.content.strip():
            continue
        role = "assistant" if m.role == "assistant" else "user"
        turns.append({"role": role, "content": m.content})
    turns.append({"role": "user", "content": text})
    return turns


class ResponseGenerator:
    """Produces and persists the assistant reply to a user message.

    The mode is fixed at construction from `ChatSettings`. In "ai" mode any
    provider error or timeout is recovered with the mock generator, so a
    reply is always persisted.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: ChatSettings,
        client_factory: Optional[Callable[[], Any]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.settings = settings
        self.mode = settings.mode
        self._client_factory = client_factory or self._default_client
        self._rng = rng

    def _default_client(self):
        return get_async_openai_compatible_client(
            self.settings.provider,
            api_key=self.settings.api_key,
            timeout=self.settings.timeout_seconds,
        )

    async def _call_provider(self, turns: list[dict]) -> str:
        try:
            client = self._client_factory()
        except Exception as e:
            raise ProviderFailure(f"client unavailable: {e}") from e
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(model=self.settings.model, messages=turns),
                timeout=self.settings.timeout_seconds,
            )
            content = response.choices[0].message.content if response.choices else None
            if content is None:
                raise ProviderFailure("provider returned no content")
            return content.strip()
        except ProviderFailure:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderFailure(f"provider timed out after {self.settings.timeout_seconds}s") from e
        except Exception as e:
            raise ProviderFailure(str(e)) from e
        finally:
            try:
                await client.close()
            except Exception:
                pass

    # Returns (content, source) where source is "ai", "mock" or "fallback"
    async def produce_text(self, conversation_id: str, turns: list[dict], text: str) -> tuple[str, str]:
        if self.mode != MODE_AI:
            return get_mock_response(text, self._rng), "mock"

        t0 = time.perf_counter()
        try:
            content = await self._call_provider(turns)
            logger.info("chat.provider.done: conv=%s chars=%d ms=%d", conversation_id, len(content), int((time.perf_counter() - t0) * 1000))
            return content, "ai"
        except ProviderFailure as e:
            logger.warning("chat.provider.fallback: conv=%s err=%s", conversation_id, e.message)
            return get_mock_response(text, self._rng), "fallback"

    async def generate(self, conversation_id: str, user_id: str, user_message_id: str, text: str) -> ChatMessage:
        conversation = store.get_conversation(self.db, conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise NotFoundOrForbidden()

        history = store.get_chat_history(self.db, conversation_id)
        turns = build_turns(history, user_message_id, text, conversation.assessment_object)
        content, source = await self.produce_text(conversation_id, turns, text)

        record = verify_parent_message_id(self.db, conversation_id, {"parent_message_id": user_message_id})
        message = store.create_chat_message(
            self.db,
            conversation_id,
            "assistant",
            content,
            parent_message_id=record["parent_message_id"],
        )
        update_preview(self.db, conversation_id, content)
        logger.info("chat.reply.saved: conv=%s msg=%s parent=%s source=%s", conversation_id, message.id, message.parent_message_id, source)
        return message
