"""
Pydantic schemas for chat messages.
"""
from typing import List, Optional

from pydantic import Field, field_validator

from docchat.schemas.common import CamelModel


def _require_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('Message text must not be blank')
    return v


class MessageCreate(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=5000)
    share_context_id: Optional[str] = None

    @field_validator('text')
    @classmethod
    def check_text(cls, v):
        return _require_text(v)


class Message(CamelModel):
    """Schema for message response."""

    message_id: str
    conversation_id: str
    created_at: str
    text: str
    is_user_message: bool
    is_loading: bool = False


class MessagePage(CamelModel):
    """Newest-first page of a thread."""

    items: List[Message]
    next_cursor: Optional[str] = None


class ChatRequest(CamelModel):
    """Request for an AI reply."""

    conversation_id: str = Field(..., min_length=1)
    user_message: str = Field(..., min_length=1, max_length=5000)
    share_context_id: Optional[str] = None

    @field_validator('user_message')
    @classmethod
    def check_user_message(cls, v):
        """Whitespace-only messages cannot be embedded."""
        return _require_text(v)
