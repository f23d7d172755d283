import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, func, or_

from HealthChat.models.assessment_model import Assessment
from HealthChat.models.chat_models import ChatMessage, Conversation

_TICK = timedelta(microseconds=1)


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Returns `now` unless the clock hasn't moved past `previous`, in which case it steps one tick past it
def _advance(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    now = now or _utcnow_naive()
    if previous is not None and now <= previous:
        return previous + _TICK
    return now


def new_id() -> str:
    return str(uuid.uuid4())


def _refresh(session, obj):
    session.flush()
    try:
        session.refresh(obj)
    except Exception:
        pass
    return obj


# ---- assessments (read-only) ----

def get_assessment(session, assessment_id):
    return session.query(Assessment).filter_by(id=assessment_id).first()


# ---- conversations ----

# Create a conversation bound to an assessment, with the assessment snapshot taken at creation time
def create_conversation(session, user_id, assessment_id, assessment_object=None, assessment_pattern=None):
    now = _utcnow_naive()
    conv = Conversation(
        id = new_id(),
        user_id = user_id,
        assessment_id = assessment_id,
        assessment_object = assessment_object,
        assessment_pattern = assessment_pattern,
        title = None,
        preview = None,
        created_at = now,
        updated_at = now,
    )
    session.add(conv)
    return _refresh(session, conv)


def get_conversation(session, conversation_id):
    return session.query(Conversation).filter_by(id=conversation_id).first()


# Ownership capability consumed by the send and edit paths
def is_owner(session, conversation_id, user_id) -> bool:
    if not conversation_id or not user_id:
        return False
    conv = get_conversation(session, conversation_id)
    return conv is not None and conv.user_id == user_id


# Apply a single update to a conversation row; assessment binding can't be changed here
def update_conversation(session, conversation_id, **fields):
    conv = get_conversation(session, conversation_id)
    if not conv:
        return None
    for immutable in ("id", "user_id", "assessment_id", "created_at"):
        fields.pop(immutable, None)
    if "updated_at" in fields:
        fields["updated_at"] = _advance(conv.updated_at, fields["updated_at"])
    for key, value in fields.items():
        setattr(conv, key, value)
    return _refresh(session, conv)


# Move updated_at forward without touching anything else
def touch_conversation(session, conversation_id):
    return update_conversation(session, conversation_id, updated_at=_utcnow_naive())


# List a user's conversations (most recently active first) with their message counts
def list_user_conversations(session, user_id):
    counts = (
        session.query(
            ChatMessage.conversation_id,
            func.count(ChatMessage.id).label("message_count"),
        )
        .group_by(ChatMessage.conversation_id)
        .subquery()
    )
    rows = (
        session.query(Conversation, func.coalesce(counts.c.message_count, 0))
        .outerjoin(counts, Conversation.id == counts.c.conversation_id)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        .all()
    )
    return [(conv, int(count)) for conv, count in rows]


# Delete a conversation and all of its messages; returns the number of messages removed
def delete_conversation(session, conversation_id) -> int:
    deleted = (
        session.query(ChatMessage)
        .filter(ChatMessage.conversation_id == conversation_id)
        .delete(synchronize_session=False)
    )
    session.query(Conversation).filter(Conversation.id == conversation_id).delete(synchronize_session=False)
    session.flush()
    return int(deleted or 0)


# ---- messages ----

# Create a chat message; created_at is kept strictly increasing within the conversation
def create_chat_message(session, conversation_id, role, content, parent_message_id=None, message_id=None):
    latest = get_most_recent_message(session, conversation_id)
    msg = ChatMessage(
        id = message_id or new_id(),
        conversation_id = conversation_id,
        role = role,
        content = content,
        parent_message_id = parent_message_id,
        created_at = _advance(latest.created_at if latest else None),
    )
    session.add(msg)
    return _refresh(session, msg)


def get_chat_message(session, conversation_id, message_id):
    return session.query(ChatMessage).filter_by(conversation_id=conversation_id, id=message_id).first()


def message_exists(session, conversation_id, message_id) -> bool:
    if not message_id:
        return False
    return get_chat_message(session, conversation_id, message_id) is not None


# Full thread in canonical (created_at, id) order
def get_chat_history(session, conversation_id):
    return (
        session.query(ChatMessage)
        .filter_by(conversation_id=conversation_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


def count_messages(session, conversation_id) -> int:
    return session.query(func.count(ChatMessage.id)).filter(ChatMessage.conversation_id == conversation_id).scalar() or 0


def get_most_recent_message(session, conversation_id):
    return (
        session.query(ChatMessage)
        .filter_by(conversation_id=conversation_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )


def get_latest_message_by_role(session, conversation_id, role):
    return (
        session.query(ChatMessage)
        .filter_by(conversation_id=conversation_id, role=role)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )


# Immediate chronological predecessor of `message` in its conversation
def get_previous_message(session, message):
    return (
        session.query(ChatMessage)
        .filter(ChatMessage.conversation_id == message.conversation_id)
        .filter(
            or_(
                ChatMessage.created_at < message.created_at,
                and_(ChatMessage.created_at == message.created_at, ChatMessage.id < message.id),
            )
        )
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )


# Messages with a strictly later created_at, in canonical order
def get_messages_after(session, conversation_id, created_at):
    return (
        session.query(ChatMessage)
        .filter(ChatMessage.conversation_id == conversation_id, ChatMessage.created_at > created_at)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


def update_chat_message(session, message, **fields):
    for immutable in ("id", "conversation_id", "role", "created_at"):
        fields.pop(immutable, None)
    for key, value in fields.items():
        setattr(message, key, value)
    return _refresh(session, message)


def delete_chat_message(session, message) -> None:
    session.delete(message)
    session.flush()
