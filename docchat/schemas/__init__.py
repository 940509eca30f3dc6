"""Schemas module - Import all schemas."""
from docchat.schemas.common import CamelModel, HealthResponse
from docchat.schemas.conversation import (
    Conversation,
    ConversationCreate,
    DeletionReport,
    ShareSession,
    ShareSessionCreate,
)
from docchat.schemas.document import Document, DocumentCreate, DocumentStatus
from docchat.schemas.knowledge import (
    Category,
    CategoryCreate,
    GradedAnswer,
    Question,
    QuestionCreate,
    ScoringSession,
)
from docchat.schemas.message import ChatRequest, Message, MessageCreate, MessagePage

__all__ = [
    "CamelModel",
    "HealthResponse",
    "Conversation",
    "ConversationCreate",
    "DeletionReport",
    "ShareSession",
    "ShareSessionCreate",
    "Document",
    "DocumentCreate",
    "DocumentStatus",
    "Category",
    "CategoryCreate",
    "GradedAnswer",
    "Question",
    "QuestionCreate",
    "ScoringSession",
    "ChatRequest",
    "Message",
    "MessageCreate",
    "MessagePage",
]
