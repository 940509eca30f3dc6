"""
Message thread endpoints.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from docchat.core.dependencies import get_db
from docchat.db.repositories import MessageRepository, ShareSessionRepository
from docchat.schemas.message import Message as MessageSchema
from docchat.schemas.message import MessageCreate, MessagePage

router = APIRouter()


def resolve_thread_id(db: Session, conversation_id: str, share_context_id: Optional[str]) -> str:
    if not share_context_id:
        return conversation_id
    ShareSessionRepository(db).get_active(share_context_id, conversation_id)
    return share_context_id


@router.post("", response_model=MessageSchema, status_code=status.HTTP_201_CREATED)
def create_message(body: MessageCreate, db: Session = Depends(get_db)) -> Any:
    """Save a user message to the conversation (or share session) thread."""
    thread_id = resolve_thread_id(db, body.conversation_id, body.share_context_id)
    return MessageRepository(db).add(thread_id, body.text, is_user_message=True)


@router.get("", response_model=MessagePage)
def list_messages(
    conversation_id: str = Query(..., alias="conversationId", min_length=1),
    share_context_id: Optional[str] = Query(None, alias="shareContextId"),
    cursor: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> Any:
    """Newest-first page of messages. Pass ``nextCursor`` back as ``cursor`` for older ones."""
    thread_id = resolve_thread_id(db, conversation_id, share_context_id)
    items, next_cursor = MessageRepository(db).page(thread_id, limit, cursor)
    return MessagePage(items=items, next_cursor=next_cursor)
