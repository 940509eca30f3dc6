"""
Cascading deletion of documents and conversations.

A conversation owns its documents, their stored objects and vector points,
its messages (including share-session threads), share sessions and review
scores. Each sub-step is attempted independently; a failed object or vector
deletion is recorded as a ``CleanupTask`` and retried by ``reconcile``.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List

from sqlalchemy.orm import Session

from docchat.core.config import settings
from docchat.core.exceptions import CascadeDeleteError
from docchat.core.helpers.vector_index import VectorIndex
from docchat.db.repositories import (
    CleanupTaskRepository,
    ConversationRepository,
    DocumentRepository,
    KnowledgeRepository,
    MessageRepository,
    ShareSessionRepository,
)
from docchat.models.document import Document
from docchat.services.file_service import ObjectStore

logger = logging.getLogger(__name__)

OBJECT_RESOURCE = "object"
VECTORS_RESOURCE = "vectors"


@dataclass
class DeletionReport:
    deleted_documents: int = 0
    deleted_messages: int = 0
    failed_steps: List[str] = field(default_factory=list)


class CascadeDeleter:
    def __init__(
        self,
        db: Session,
        object_store: ObjectStore,
        vector_index: VectorIndex,
        collection: str = settings.DOCUMENT_COLLECTION,
    ):
        self.db = db
        self.object_store = object_store
        self.vector_index = vector_index
        self.collection = collection

    def delete_document(self, conversation_id: str, doc_id: str) -> DeletionReport:
        """
        Delete one document: metadata row, stored object, vector points.

        Raises:
            NotFoundError: If the document does not belong to the conversation
        """
        repository = DocumentRepository(self.db)
        document = repository.get_for_conversation(conversation_id, doc_id)
        storage_key = document.storage_key
        vector_filter = {"document_id": doc_id, "conversation_id": conversation_id}

        report = DeletionReport()
        repository.delete(document)
        report.deleted_documents = 1
        self._delete_object(storage_key, report)
        self._delete_vectors(vector_filter, doc_id, report)
        logger.info(f"Document {doc_id} deleted ({len(report.failed_steps)} steps deferred)")
        return report

    def delete_conversation(self, conversation_id: str) -> DeletionReport:
        """Delete a conversation and everything it owns, continuing past failed steps."""
        report = DeletionReport()
        documents = DocumentRepository(self.db).list_for_conversation(conversation_id)
        logger.info(f"Deleting conversation {conversation_id} with {len(documents)} documents")

        for document in documents:
            self._delete_owned_document(document, report)

        # sweep points whose document row is already gone
        self._delete_vectors({"conversation_id": conversation_id}, conversation_id, report)

        shares = ShareSessionRepository(self.db)
        thread_ids = [conversation_id] + shares.list_ids_for_conversation(conversation_id)

        def delete_messages():
            report.deleted_messages = MessageRepository(self.db).delete_for_threads(thread_ids)

        self._run_step("messages", conversation_id, delete_messages, report)
        self._run_step(
            "share_sessions", conversation_id, lambda: shares.delete_for_conversation(conversation_id), report
        )
        self._run_step(
            "scoring_sessions",
            conversation_id,
            lambda: KnowledgeRepository(self.db).delete_scoring_sessions(conversation_id),
            report,
        )
        self._run_step(
            "conversation",
            conversation_id,
            lambda: ConversationRepository(self.db).delete(conversation_id),
            report,
        )

        logger.info(
            f"Conversation {conversation_id} deleted: {report.deleted_documents} documents, "
            f"{report.deleted_messages} messages, {len(report.failed_steps)} failed steps"
        )
        return report

    def reconcile(self) -> int:
        """
        Retry recorded cleanup tasks.

        Returns:
            Number of tasks resolved
        """
        repository = CleanupTaskRepository(self.db)
        resolved = 0
        for task in repository.list_pending():
            try:
                if task.resource_type == OBJECT_RESOURCE:
                    self.object_store.delete(task.resource_key)
                else:
                    payload = task.payload or {}
                    self.vector_index.delete(payload.get("collection", self.collection), payload["filter"])
            except Exception as e:
                task.attempts += 1
                task.error = str(e)
                logger.warning(f"Cleanup task {task.id} ({task.resource_type} {task.resource_key}) still failing: {e}")
                continue
            self.db.delete(task)
            resolved += 1
        self.db.commit()
        logger.info(f"Reconciled {resolved} cleanup tasks")
        return resolved

    def _delete_owned_document(self, document: Document, report: DeletionReport) -> None:
        doc_id = document.doc_id
        storage_key = document.storage_key
        vector_filter = {"document_id": doc_id, "conversation_id": document.conversation_id}

        self._delete_object(storage_key, report)
        self._delete_vectors(vector_filter, doc_id, report)

        def delete_row():
            DocumentRepository(self.db).delete(document)
            report.deleted_documents += 1

        self._run_step("document", doc_id, delete_row, report)

    def _delete_object(self, storage_key: str, report: DeletionReport) -> None:
        try:
            self.object_store.delete(storage_key)
        except Exception as e:
            self._defer(CascadeDeleteError(f"Object delete failed: {e}", OBJECT_RESOURCE, storage_key, e), report)

    def _delete_vectors(self, vector_filter: dict, key: str, report: DeletionReport) -> None:
        try:
            self.vector_index.delete(self.collection, vector_filter)
        except Exception as e:
            error = CascadeDeleteError(f"Vector delete failed: {e}", VECTORS_RESOURCE, key, e)
            self._defer(error, report, payload={"collection": self.collection, "filter": vector_filter})

    def _defer(self, error: CascadeDeleteError, report: DeletionReport, payload: dict = None) -> None:
        logger.error(f"{error} [{error.resource_type} {error.resource_key}], recorded for reconciliation")
        report.failed_steps.append(f"{error.resource_type}:{error.resource_key}")
        CleanupTaskRepository(self.db).record(error.resource_type, error.resource_key, str(error), payload)

    def _run_step(self, resource_type: str, key: str, step: Callable[[], None], report: DeletionReport) -> None:
        try:
            step()
        except Exception as e:
            self.db.rollback()
            error = CascadeDeleteError(f"Delete of {resource_type} failed: {e}", resource_type, key, e)
            logger.error(f"{error} [{resource_type} {key}]")
            report.failed_steps.append(f"{resource_type}:{key}")
