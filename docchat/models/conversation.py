"""
Conversation models for document-grounded chat.
"""
from sqlalchemy import Boolean, Column, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import validates

from docchat.db.base import Base


class Conversation(Base):
    """
    Conversation that scopes documents and messages together.
    """
    __tablename__ = "conversations"

    conversation_id = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="untitled conversation")
    created_at = Column(String, nullable=False)


class Message(Base):
    """
    One turn in a conversation thread, ordered by ``created_at``.

    ``conversation_id`` holds the thread id, which is the conversation itself
    or a share session of it.
    """
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "created_at", name="uq_messages_conversation_created_at"),
    )

    message_id = Column(String(36), primary_key=True)
    conversation_id = Column(String, nullable=False, index=True)
    created_at = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    is_user_message = Column(Boolean, nullable=False)
    is_loading = Column(Boolean, nullable=False, default=False)

    @validates("is_loading")
    def validate_is_loading(self, key, value):
        # an optimistic placeholder may become final, never the reverse
        if value and self.is_loading is False:
            raise ValueError("is_loading cannot go from false to true")
        return value


class ShareSession(Base):
    """
    Read-only shared view of a conversation with its own message thread.
    """
    __tablename__ = "share_sessions"

    share_id = Column(String(36), primary_key=True)
    conversation_id = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String, nullable=False)
    expires_at = Column(Integer, nullable=True)  # epoch seconds
