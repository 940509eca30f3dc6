"""
Conversation endpoints: create, list, cascade delete and share sessions.
"""
import logging
import time
from typing import Any, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from docchat.core.cleanup import CascadeDeleter
from docchat.core.dependencies import Services, get_db, get_services
from docchat.db.repositories import ConversationRepository, ShareSessionRepository
from docchat.schemas.conversation import Conversation as ConversationSchema
from docchat.schemas.conversation import ConversationCreate, DeletionReport
from docchat.schemas.conversation import ShareSession as ShareSessionSchema
from docchat.schemas.conversation import ShareSessionCreate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ConversationSchema, status_code=status.HTTP_201_CREATED)
def create_conversation(body: ConversationCreate, db: Session = Depends(get_db)) -> Any:
    return ConversationRepository(db).create(body.user_id, body.name)


@router.get("", response_model=List[ConversationSchema])
def list_conversations(
    user_id: str = Query(..., alias="userId", min_length=1),
    db: Session = Depends(get_db),
) -> Any:
    return ConversationRepository(db).list_for_user(user_id)


@router.delete("/{conversation_id}", response_model=DeletionReport)
def delete_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Any:
    """
    Delete a conversation with its documents, stored files, vectors,
    messages, share sessions and review scores.

    Steps that fail are reported and left for reconciliation.
    """
    deleter = CascadeDeleter(db, services.object_store, services.vector_index)
    return deleter.delete_conversation(conversation_id)


@router.post("/{conversation_id}/share", response_model=ShareSessionSchema, status_code=status.HTTP_201_CREATED)
def create_share_session(
    conversation_id: str,
    body: ShareSessionCreate,
    db: Session = Depends(get_db),
) -> Any:
    ConversationRepository(db).get(conversation_id)
    expires_at = int(time.time()) + body.expires_in_seconds if body.expires_in_seconds else None
    share = ShareSessionRepository(db).create(conversation_id, expires_at=expires_at)
    logger.info(f"Share session {share.share_id} opened for conversation {conversation_id}")
    return share


@router.delete("/{conversation_id}/share/{share_id}", response_model=ShareSessionSchema)
def deactivate_share_session(conversation_id: str, share_id: str, db: Session = Depends(get_db)) -> Any:
    return ShareSessionRepository(db).deactivate(share_id, conversation_id)
