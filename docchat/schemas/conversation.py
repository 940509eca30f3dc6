"""
Pydantic schemas for conversations and share sessions.
"""
from typing import List, Optional

from pydantic import Field

from docchat.schemas.common import CamelModel


class ConversationCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    name: Optional[str] = Field(None, max_length=255)


class Conversation(CamelModel):
    conversation_id: str
    user_id: str
    name: str
    created_at: str


class ShareSessionCreate(CamelModel):
    expires_in_seconds: Optional[int] = Field(None, gt=0)


class ShareSession(CamelModel):
    share_id: str
    conversation_id: str
    is_active: bool
    created_at: str
    expires_at: Optional[int] = None


class DeletionReport(CamelModel):
    """Outcome of a cascading delete."""

    deleted_documents: int
    deleted_messages: int
    failed_steps: List[str] = Field(default_factory=list)
