"""Tests for the processing status state machine."""
import pytest

from docchat.core.document_status import DocumentStatusTracker, can_transition
from docchat.core.exceptions import InvalidTransitionError
from docchat.db.repositories import DocumentRepository
from docchat.models.document import ProcessingStatus


@pytest.fixture
def document(db):
    return DocumentRepository(db).create("conv-1", "a.pdf", "uploads/a.pdf", "application/pdf")


def _row(db, doc_id):
    db.expire_all()
    return DocumentRepository(db).get(doc_id)


def test_allowed_transitions():
    assert can_transition(ProcessingStatus.QUEUED, ProcessingStatus.PROCESSING)
    assert can_transition(ProcessingStatus.PROCESSING, ProcessingStatus.FAILED)
    assert not can_transition(ProcessingStatus.PROCESSED, ProcessingStatus.FAILED)
    assert not can_transition(ProcessingStatus.FAILED, ProcessingStatus.QUEUED)
    assert not can_transition(ProcessingStatus.PROCESSING, ProcessingStatus.QUEUED)


def test_claim_is_exclusive(db, document):
    tracker = DocumentStatusTracker(db)
    token = tracker.claim(document.doc_id)

    assert token is not None
    assert tracker.claim(document.doc_id) is None
    assert _row(db, document.doc_id).processing_status == ProcessingStatus.PROCESSING


def test_released_claim_can_be_reclaimed(db, document):
    tracker = DocumentStatusTracker(db)
    token = tracker.claim(document.doc_id)

    assert tracker.release(document.doc_id, token)
    second = tracker.claim(document.doc_id)
    assert second is not None and second != token


def test_processed_is_terminal(db, document):
    tracker = DocumentStatusTracker(db)
    token = tracker.claim(document.doc_id)
    tracker.mark_processed(document.doc_id, token)

    assert tracker.claim(document.doc_id) is None
    assert not tracker.mark_failed(document.doc_id, "late failure")
    assert _row(db, document.doc_id).processing_status == ProcessingStatus.PROCESSED


def test_mark_processed_requires_claim(db, document):
    tracker = DocumentStatusTracker(db)
    tracker.claim(document.doc_id)

    with pytest.raises(InvalidTransitionError):
        tracker.mark_processed(document.doc_id, "someone-else")


def test_queued_document_can_fail_without_claim(db, document):
    assert DocumentStatusTracker(db).mark_failed(document.doc_id, "enqueue failed")

    row = _row(db, document.doc_id)
    assert row.processing_status == ProcessingStatus.FAILED
    assert row.processing_error == "enqueue failed"


def test_unclaimed_fail_does_not_override_active_claim(db, document):
    tracker = DocumentStatusTracker(db)
    tracker.claim(document.doc_id)

    assert not tracker.mark_failed(document.doc_id, "stale hook")
    assert _row(db, document.doc_id).processing_status == ProcessingStatus.PROCESSING
