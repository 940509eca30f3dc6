"""
Document model for uploaded files and their processing status.
"""
import enum

from sqlalchemy import Boolean, Column, Enum, String, Text, UniqueConstraint

from docchat.db.base import Base


class ProcessingStatus(str, enum.Enum):
    """Processing states of an uploaded document."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class Document(Base):
    """
    One uploaded file tied to a conversation.

    Keyed by ``(conversation_id, uploaded_at)`` with ``doc_id`` as the global
    identifier. Only the processing state machine writes the status columns.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("conversation_id", "uploaded_at", name="uq_documents_conversation_uploaded_at"),
        UniqueConstraint("conversation_id", "doc_id", name="uq_documents_conversation_doc"),
    )

    doc_id = Column(String(36), primary_key=True)
    conversation_id = Column(String, nullable=False, index=True)
    uploaded_at = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    storage_key = Column(String, nullable=False)
    file_type = Column(String, nullable=False)  # MIME type
    processing_status = Column(
        Enum(ProcessingStatus, native_enum=False, length=16),
        nullable=False,
        default=ProcessingStatus.QUEUED,
    )
    processing_error = Column(Text, nullable=True)
    claim_token = Column(String(36), nullable=True)  # held by the worker currently processing
    review_requested = Column(Boolean, nullable=False, default=False)
