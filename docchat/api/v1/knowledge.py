"""
Reference knowledge base endpoints.

Reference questions with curated answers are embedded into their own
collection and quoted by the chat agent when a user asks something similar.
"""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from docchat.core.dependencies import Services, get_db, get_services
from docchat.core.exceptions import DocChatError
from docchat.db.repositories import KnowledgeRepository
from docchat.schemas.knowledge import Category as CategorySchema
from docchat.schemas.knowledge import CategoryCreate, QuestionCreate
from docchat.schemas.knowledge import Question as QuestionSchema

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/categories", response_model=CategorySchema, status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryCreate, db: Session = Depends(get_db)) -> Any:
    return KnowledgeRepository(db).create_category(body.name, body.qualification_cutoff)


@router.get("/categories", response_model=List[CategorySchema])
def list_categories(db: Session = Depends(get_db)) -> Any:
    return KnowledgeRepository(db).list_categories()


@router.post("/questions", response_model=QuestionSchema, status_code=status.HTTP_201_CREATED)
def create_question(
    body: QuestionCreate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Any:
    """Store a reference question and index it for retrieval."""
    repository = KnowledgeRepository(db)
    question = repository.create_question(body.text, body.answer, body.category_id)
    try:
        services.reference_lookup.index_question(question)
    except DocChatError as e:
        logger.error(f"Indexing reference question {question.question_id} failed: {e}")
        repository.delete_question(question.question_id)
        raise
    return question


@router.get("/questions", response_model=List[QuestionSchema])
def list_questions(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    db: Session = Depends(get_db),
) -> Any:
    return KnowledgeRepository(db).list_questions(category_id)


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Response:
    KnowledgeRepository(db).delete_question(question_id)
    try:
        services.reference_lookup.remove_question(question_id)
    except DocChatError as e:
        # lookups skip hits whose question row is gone
        logger.warning(f"Reference point for question {question_id} not removed: {e}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
