from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Text

from HealthChat.database import Base


# Conversation-level metadata; bound to a single assessment for its whole life
class Conversation(Base):
    __tablename__ = "conversations"

    __table_args__ = (
        Index("ix_conversations_user_id_updated_at", "user_id", "updated_at"),
    )

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)
    assessment_id = Column(String(64), index=True, nullable=False)
    assessment_object = Column(JSON, nullable=True)
    assessment_pattern = Column(String(64), nullable=True)
    title = Column(String(255), nullable=True)
    preview = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


# Individual chat messages, threaded through parent_message_id
class ChatMessage(Base):
    __tablename__ = "chat_messages"

    # Canonical thread order is (created_at, id)
    __table_args__ = (
        Index("ix_chat_messages_conversation_id_created_at_id", "conversation_id", "created_at", "id"),
    )

    id = Column(String(64), primary_key=True)
    conversation_id = Column(String(64), ForeignKey("conversations.id"), index=True, nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    parent_message_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False)
    edited_at = Column(DateTime, nullable=True)
