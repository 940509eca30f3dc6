"""
Document processing state machine.

    QUEUED -> PROCESSING -> PROCESSED
                  |
                  +-------> FAILED   (QUEUED -> FAILED on pre-flight failure)

Every transition is a single conditional UPDATE, so concurrent workers never
race on a read-modify-write of the status row. A worker owns a PROCESSING
document through ``claim_token``; duplicate deliveries find the claim taken
and back off.
"""
import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from docchat.core.exceptions import InvalidTransitionError
from docchat.models.document import Document, ProcessingStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ProcessingStatus.QUEUED: {ProcessingStatus.PROCESSING, ProcessingStatus.FAILED},
    ProcessingStatus.PROCESSING: {ProcessingStatus.PROCESSED, ProcessingStatus.FAILED},
    ProcessingStatus.PROCESSED: set(),
    ProcessingStatus.FAILED: set(),
}


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class DocumentStatusTracker:
    """Atomic status transitions for one metadata store session."""

    def __init__(self, db: Session):
        self.db = db

    def _apply(self, doc_id: str, condition, values: dict) -> bool:
        result = self.db.execute(
            update(Document)
            .where(Document.doc_id == doc_id, condition)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def claim(self, doc_id: str) -> Optional[str]:
        """
        Move a document into PROCESSING for this worker.

        A QUEUED document can be claimed, and so can a PROCESSING document whose
        previous claim was released after a retryable failure.

        Returns:
            The claim token, or None when there is nothing to do
        """
        token = str(uuid.uuid4())
        claimed = self._apply(
            doc_id,
            or_(
                Document.processing_status == ProcessingStatus.QUEUED,
                and_(
                    Document.processing_status == ProcessingStatus.PROCESSING,
                    Document.claim_token.is_(None),
                ),
            ),
            {"processing_status": ProcessingStatus.PROCESSING, "claim_token": token},
        )
        if not claimed:
            logger.info(f"Document {doc_id} not claimable (missing, claimed or finished)")
            return None
        logger.info(f"Document {doc_id} -> PROCESSING")
        return token

    def release(self, doc_id: str, token: str) -> bool:
        """Give up the claim so a later attempt can re-claim. Status stays PROCESSING."""
        released = self._apply(
            doc_id,
            and_(
                Document.processing_status == ProcessingStatus.PROCESSING,
                Document.claim_token == token,
            ),
            {"claim_token": None},
        )
        if released:
            logger.info(f"Document {doc_id} claim released for retry")
        return released

    def mark_processed(self, doc_id: str, token: str) -> None:
        done = self._apply(
            doc_id,
            and_(
                Document.processing_status == ProcessingStatus.PROCESSING,
                Document.claim_token == token,
            ),
            {"processing_status": ProcessingStatus.PROCESSED, "claim_token": None, "processing_error": None},
        )
        if not done:
            raise InvalidTransitionError(f"Document {doc_id} is no longer claimed by this worker")
        logger.info(f"Document {doc_id} -> PROCESSED")

    def mark_failed(self, doc_id: str, error: str, token: Optional[str] = None) -> bool:
        """
        Record a terminal failure.

        With a token only the claiming worker may fail the document; without
        one only an unclaimed document (QUEUED, or PROCESSING with a released
        claim) can be failed.
        """
        if token is not None:
            condition = and_(
                Document.processing_status == ProcessingStatus.PROCESSING,
                Document.claim_token == token,
            )
        else:
            condition = and_(
                Document.processing_status.in_(_sources(ProcessingStatus.FAILED)),
                Document.claim_token.is_(None),
            )
        failed = self._apply(
            doc_id,
            condition,
            {"processing_status": ProcessingStatus.FAILED, "claim_token": None, "processing_error": error},
        )
        if failed:
            logger.info(f"Document {doc_id} -> FAILED: {error}")
        else:
            logger.warning(f"Document {doc_id} could not be marked FAILED from its current state")
        return failed


def _sources(target: ProcessingStatus) -> Iterable[ProcessingStatus]:
    return [state for state in ALLOWED_TRANSITIONS if can_transition(state, target)]
