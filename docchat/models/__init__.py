"""Models module - Import all metadata models here so create_all sees them."""
from docchat.db.base import Base
from docchat.models.document import Document, ProcessingStatus
from docchat.models.conversation import Conversation, Message, ShareSession
from docchat.models.knowledge import Category, Question, ScoringSession
from docchat.models.cleanup import CleanupTask

__all__ = [
    "Base",
    "Document",
    "ProcessingStatus",
    "Conversation",
    "Message",
    "ShareSession",
    "Category",
    "Question",
    "ScoringSession",
    "CleanupTask",
]
