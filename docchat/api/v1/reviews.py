"""
Document review results.
"""
from typing import Any, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from docchat.core.dependencies import get_db
from docchat.db.repositories import KnowledgeRepository
from docchat.schemas.knowledge import ScoringSession

router = APIRouter()


@router.get("", response_model=List[ScoringSession])
def list_reviews(
    conversation_id: str = Query(..., alias="conversationId", min_length=1),
    db: Session = Depends(get_db),
) -> Any:
    return KnowledgeRepository(db).list_scoring_sessions(conversation_id)
