"""
Pydantic schemas for the reference knowledge base and document reviews.
"""
from typing import List, Optional

from pydantic import Field

from docchat.schemas.common import CamelModel


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    qualification_cutoff: int = Field(50, ge=0, le=100)


class Category(CamelModel):
    category_id: str
    name: str
    qualification_cutoff: int
    created_at: str


class QuestionCreate(CamelModel):
    text: str = Field(..., min_length=1)
    answer: Optional[str] = None
    category_id: Optional[str] = None


class Question(CamelModel):
    question_id: str
    category_id: Optional[str] = None
    text: str
    answer: Optional[str] = None
    created_at: str


class GradedAnswer(CamelModel):
    question_id: str
    score: int  # 2 yes, 1 maybe, 0 no, -1 unanswerable
    reasoning: str


class ScoringSession(CamelModel):
    session_id: str
    conversation_id: str
    document_id: str
    name: str
    status: str
    answers: List[GradedAnswer] = Field(default_factory=list)
    unanswerable: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: str
