"""
Document processing pipeline: extraction, chunking, embedding and indexing.
"""
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy.orm import Session

from docchat.core.config import settings
from docchat.core.document_status import DocumentStatusTracker
from docchat.core.exceptions import DocChatError, InvalidTransitionError, QuotaError, RetryableJobError
from docchat.core.helpers.chunk_embedder import ChunkEmbedder
from docchat.core.helpers.extracter import DocumentExtractor
from docchat.core.helpers.vector_index import VectorIndex, VectorPoint
from docchat.models.document import Document, ProcessingStatus
from docchat.services.task_queue import Job

logger = logging.getLogger(__name__)


def chunk_point_id(doc_id: str, chunk_index: int) -> str:
    """Stable point id, so a re-run overwrites its own points instead of duplicating them."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"docchat:{doc_id}:{chunk_index}"))


def document_filter(document: Document) -> dict:
    return {"document_id": document.doc_id, "conversation_id": document.conversation_id}


class DocumentProcessor:
    """
    Main document processing pipeline.
    Orchestrates claim, extraction, chunking, embedding and indexing for one document.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        extractor: DocumentExtractor,
        chunk_embedder: ChunkEmbedder,
        vector_index: VectorIndex,
        collection: str = settings.DOCUMENT_COLLECTION,
    ):
        self.session_factory = session_factory
        self.extractor = extractor
        self.chunk_embedder = chunk_embedder
        self.vector_index = vector_index
        self.collection = collection

    def handle_job(self, job: Job) -> None:
        """Queue entry point. The job id is the document id."""
        self.process(job.job_id, is_last_attempt=job.is_last_attempt)

    def handle_exhausted(self, job: Job, error: BaseException) -> None:
        """Fail a document whose job ran out of attempts without reaching a terminal state."""
        with self.session_factory() as db:
            DocumentStatusTracker(db).mark_failed(job.job_id, f"Processing gave up: {error}")

    def process(self, doc_id: str, is_last_attempt: bool = True) -> Optional[ProcessingStatus]:
        """
        Process a document through the full pipeline.

        Returns:
            The terminal status reached, or None when the document was not
            claimable (missing, already claimed, PROCESSED or FAILED)

        Raises:
            RetryableJobError: On quota exhaustion with attempts left
        """
        with self.session_factory() as db:
            tracker = DocumentStatusTracker(db)
            token = tracker.claim(doc_id)
            if token is None:
                return None

            document = db.get(Document, doc_id)
            if document is None:
                logger.warning(f"Document {doc_id} disappeared after being claimed")
                return None
            filename = document.file_name

            try:
                # Step 1: Extract text from document
                logger.info(f"Extracting text from '{filename}'")
                text = self.extractor.extract(document.storage_key, document.file_type)

                # Step 2: Chunk and embed
                logger.info(f"Chunking and embedding '{filename}'")
                chunks = self.chunk_embedder.chunk_and_embed(text)

                # Step 3: Index one point per chunk
                if chunks:
                    points = [
                        VectorPoint(
                            id=chunk_point_id(document.doc_id, chunk.index),
                            vector=chunk.embedding,
                            payload={
                                **document_filter(document),
                                "text": chunk.text,
                                "file_name": document.file_name,
                                "storage_key": document.storage_key,
                                "chunk_index": chunk.index,
                            },
                        )
                        for chunk in chunks
                    ]
                    self.vector_index.ensure_collection(self.collection)
                    self.vector_index.upsert(self.collection, points)
                logger.info(f"Indexed {len(chunks)} chunks for document {doc_id}")

                tracker.mark_processed(doc_id, token)
                return ProcessingStatus.PROCESSED

            except InvalidTransitionError as e:
                logger.error(f"Lost claim on document {doc_id}: {e}")
                self._discard_partial_points(document)
                return None
            except QuotaError as e:
                if not is_last_attempt:
                    self._discard_partial_points(document)
                    tracker.release(doc_id, token)
                    raise RetryableJobError(str(e), cause=e)
                return self._fail(tracker, document, token, str(e))
            except DocChatError as e:
                return self._fail(tracker, document, token, str(e))
            except Exception as e:
                logger.exception(f"Unexpected failure processing document {doc_id}")
                return self._fail(tracker, document, token, f"Unexpected error: {e}")

    def _fail(self, tracker: DocumentStatusTracker, document: Document, token: str, error: str) -> ProcessingStatus:
        logger.error(f"Failed to process document '{document.file_name}': {error}")
        self._discard_partial_points(document)
        tracker.mark_failed(document.doc_id, error, token=token)
        return ProcessingStatus.FAILED

    def _discard_partial_points(self, document: Document) -> None:
        """Best-effort removal of points written by a failed attempt."""
        try:
            self.vector_index.delete(self.collection, document_filter(document))
        except DocChatError as e:
            logger.warning(f"Could not remove partial points for document {document.doc_id}: {e}")
