"""
Pydantic schemas for Document model.
"""
from typing import Optional

from pydantic import Field

from docchat.models.document import ProcessingStatus
from docchat.schemas.common import CamelModel


class DocumentCreate(CamelModel):
    """Metadata of an already stored upload."""

    conversation_id: str = Field(..., min_length=1)
    storage_key: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)
    doc_id: Optional[str] = Field(None, min_length=1, max_length=36)
    review: bool = False


class Document(CamelModel):
    """Schema for document response."""

    doc_id: str
    conversation_id: str
    uploaded_at: str
    file_name: str
    storage_key: str
    file_type: str
    processing_status: ProcessingStatus
    processing_error: Optional[str] = None
    review_requested: bool = False


class DocumentStatus(CamelModel):
    """Polling view of one document."""

    doc_id: str
    file_name: str
    processing_status: ProcessingStatus
    processing_error: Optional[str] = None
