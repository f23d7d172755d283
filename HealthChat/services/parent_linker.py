"""Parent-pointer assignment for chat messages.

Every message except the first in a conversation points at an earlier message
in the same conversation. Callers may omit or mis-supply the parent; the linker
corrects the record instead of rejecting it so the thread stays connected.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from HealthChat.crud import chat as store
from HealthChat.models.chat_models import ChatMessage

logger = logging.getLogger(__name__)


def most_recent_message(db: Session, conversation_id: str) -> Optional[ChatMessage]:
    return store.get_most_recent_message(db, conversation_id)


def verify_parent_message_id(db: Session, conversation_id: str, candidate: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `candidate` whose `parent_message_id` is valid for insertion.

    - No prior message: parent is forced to None (first-message rule).
    - Supplied parent exists in this conversation: kept as is.
    - Supplied parent missing, unknown or from another conversation: replaced
      with the most recent message's id.
    """
    record = dict(candidate)
    latest = most_recent_message(db, conversation_id)

    if latest is None:
        if record.get("parent_message_id"):
            logger.info("parent.first_message: conv=%s dropping parent=%s", conversation_id, record["parent_message_id"])
        record["parent_message_id"] = None
        return record

    supplied = record.get("parent_message_id")
    if supplied:
        if store.message_exists(db, conversation_id, supplied):
            return record
        logger.warning("parent.invalid: conv=%s parent=%s using most recent %s", conversation_id, supplied, latest.id)
    else:
        logger.info("parent.defaulted: conv=%s parent=%s", conversation_id, latest.id)

    record["parent_message_id"] = latest.id
    return record


# Backfills a null parent on a non-first message with its chronological predecessor
def repair_parent_id(db: Session, conversation_id: str, message_id: str) -> Optional[ChatMessage]:
    message = store.get_chat_message(db, conversation_id, message_id)
    if message is None:
        return None
    if message.parent_message_id:
        return message

    previous = store.get_previous_message(db, message)
    if previous is None:
        return message

    store.update_chat_message(db, message, parent_message_id=previous.id)
    logger.info("parent.repaired: conv=%s msg=%s parent=%s", conversation_id, message_id, previous.id)
    return message
