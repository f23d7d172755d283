import logging
from typing import Optional

from sqlalchemy.orm import Session

from HealthChat.crud.chat import _utcnow_naive, update_conversation

logger = logging.getLogger(__name__)

PREVIEW_MAX_LENGTH = 50


def build_preview(content: Optional[str]) -> str:
    text = content or ""
    if len(text) > PREVIEW_MAX_LENGTH:
        return text[:PREVIEW_MAX_LENGTH] + "..."
    return text


# Stores the preview of the latest assistant message and bumps updated_at in one update
def update_preview(db: Session, conversation_id: str, assistant_content: Optional[str]):
    preview = build_preview(assistant_content)
    conv = update_conversation(db, conversation_id, preview=preview, updated_at=_utcnow_naive())
    if conv is None:
        logger.warning("preview.missing_conversation: conv=%s", conversation_id)
    return conv
