"""
Document ingestion endpoints: accept upload metadata, poll status, delete.
"""
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from docchat.core.cleanup import CascadeDeleter
from docchat.core.dependencies import Services, get_db, get_services
from docchat.core.document_status import DocumentStatusTracker
from docchat.core.exceptions import EnqueueError
from docchat.db.repositories import DocumentRepository
from docchat.schemas.document import Document as DocumentSchema
from docchat.schemas.document import DocumentCreate, DocumentStatus
from docchat.services.task_queue import PROCESS_DOCUMENT, PROCESS_DOCUMENT_FOR_REVIEW

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=DocumentSchema, status_code=status.HTTP_201_CREATED)
def create_document(
    body: DocumentCreate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Any:
    """
    Register an uploaded file and queue it for processing.

    The bytes are already in the object store under ``storageKey``.
    """
    document = DocumentRepository(db).create(
        conversation_id=body.conversation_id,
        file_name=body.file_name,
        storage_key=body.storage_key,
        file_type=body.file_type,
        doc_id=body.doc_id,
        review_requested=body.review,
    )

    job_name = PROCESS_DOCUMENT_FOR_REVIEW if body.review else PROCESS_DOCUMENT
    try:
        services.task_queue.enqueue(
            job_name,
            {"doc_id": document.doc_id, "conversation_id": document.conversation_id},
            job_id=document.doc_id,
        )
    except EnqueueError as e:
        logger.error(f"Could not enqueue document {document.doc_id}: {e}")
        DocumentStatusTracker(db).mark_failed(document.doc_id, "Failed to queue document for processing")
        raise

    return document


@router.get("", response_model=List[DocumentSchema])
def list_documents(
    conversation_id: str = Query(..., alias="conversationId", min_length=1),
    db: Session = Depends(get_db),
) -> Any:
    return DocumentRepository(db).list_for_conversation(conversation_id)


@router.get("/status", response_model=List[DocumentStatus])
def get_status(
    conversation_id: str = Query(..., alias="conversationId", min_length=1),
    db: Session = Depends(get_db),
) -> Any:
    """Processing status of every document in a conversation."""
    return DocumentRepository(db).list_for_conversation(conversation_id)


@router.delete("/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    doc_id: str,
    conversation_id: str = Query(..., alias="conversationId", min_length=1),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Response:
    CascadeDeleter(db, services.object_store, services.vector_index).delete_document(conversation_id, doc_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
