"""
Reference knowledge base: categories, curated questions and review scores.
"""
from sqlalchemy import JSON, Column, Integer, String, Text

from docchat.db.base import Base


class Category(Base):
    """Grouping for reference questions."""

    __tablename__ = "categories"

    category_id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    qualification_cutoff = Column(Integer, nullable=False, default=50)
    created_at = Column(String, nullable=False)


class Question(Base):
    """
    Reference question with an optional curated answer.

    Questions are embedded into the reference collection so chat answers can
    quote the curated answer, and they drive document reviews.
    """

    __tablename__ = "questions"

    question_id = Column(String(36), primary_key=True)
    category_id = Column(String(36), nullable=True, index=True)
    text = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    created_at = Column(String, nullable=False)


class ScoringSession(Base):
    """Result of reviewing one document against every reference question."""

    __tablename__ = "scoring_sessions"

    session_id = Column(String(36), primary_key=True)
    conversation_id = Column(String, nullable=False, index=True)
    document_id = Column(String(36), nullable=False)
    name = Column(String, nullable=False)
    status = Column(String(16), nullable=False, default="PENDING")  # PENDING, COMPLETED, FAILED
    answers = Column(JSON, nullable=False, default=list)  # [{question_id, score, reasoning}]
    unanswerable = Column(JSON, nullable=False, default=list)  # [question_id]
    error = Column(Text, nullable=True)
    created_at = Column(String, nullable=False)
