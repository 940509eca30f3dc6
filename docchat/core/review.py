"""
Document review: grade an ingested document against every reference question.
"""
import logging
import re
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from sqlalchemy import select
from sqlalchemy.orm import Session

from docchat.core.agents.chat.prompt import REVIEW_SYSTEM_PROMPT, REVIEW_USER_PROMPT_TEMPLATE
from docchat.core.config import settings
from docchat.core.document_processor import DocumentProcessor
from docchat.core.exceptions import DocChatError
from docchat.core.helpers.embedder import EmbeddingService
from docchat.core.helpers.vector_index import VectorIndex
from docchat.core.llm_config import complete
from docchat.db.repositories import KnowledgeRepository
from docchat.models.document import Document, ProcessingStatus
from docchat.models.knowledge import Question, ScoringSession
from docchat.services.task_queue import Job
from docchat.utils.clock import utc_timestamp

logger = logging.getLogger(__name__)

ANSWER_SCORES = {"yes": 2, "maybe": 1, "no": 0, "-1": -1}

_ANSWER_RE = re.compile(r"Answer:\s*\[?\s*(Yes|Maybe|No|-1)\b", re.IGNORECASE)
_REASON_RE = re.compile(r"Reason:\s*(.+)", re.IGNORECASE)


def parse_graded_answer(response: str) -> Tuple[int, str]:
    """
    Parse an ``Answer: ... / Reason: ...`` reply into (score, reason).

    Unparseable replies count as unanswerable.
    """
    answer = _ANSWER_RE.search(response)
    reason = _REASON_RE.search(response)
    score = ANSWER_SCORES[answer.group(1).lower()] if answer else -1
    return score, reason.group(1).strip() if reason else response.strip()


class DocumentReviewer:
    """Handler for the ``process_document_for_review`` job."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        processor: DocumentProcessor,
        embedder: EmbeddingService,
        vector_index: VectorIndex,
        llm: BaseChatModel,
        collection: str = settings.DOCUMENT_COLLECTION,
        search_limit: int = settings.SEARCH_RESULT_LIMIT,
    ):
        self.session_factory = session_factory
        self.processor = processor
        self.embedder = embedder
        self.vector_index = vector_index
        self.llm = llm
        self.collection = collection
        self.search_limit = search_limit

    def handle_job(self, job: Job) -> None:
        # ingestion first; a RetryableJobError propagates to the queue
        self.processor.process(job.job_id, is_last_attempt=job.is_last_attempt)
        self.review(job.job_id)

    def handle_exhausted(self, job: Job, error: BaseException) -> None:
        self.processor.handle_exhausted(job, error)

    def review(self, doc_id: str) -> Optional[ScoringSession]:
        with self.session_factory() as db:
            document = db.get(Document, doc_id)
            if document is None:
                logger.warning(f"Review skipped, document {doc_id} not found")
                return None
            if document.processing_status != ProcessingStatus.PROCESSED:
                logger.info(f"Review skipped, document {doc_id} is {document.processing_status.value}")
                return None

            existing = db.execute(
                select(ScoringSession).where(ScoringSession.document_id == doc_id)
            ).scalars().first()
            if existing is not None:
                logger.info(f"Document {doc_id} already reviewed in session {existing.session_id}")
                return existing

            repository = KnowledgeRepository(db)
            questions = repository.list_questions()
            scoring = ScoringSession(
                session_id=str(uuid.uuid4()),
                conversation_id=document.conversation_id,
                document_id=doc_id,
                name=f"Review of {document.file_name}",
                status="PENDING",
                answers=[],
                unanswerable=[],
                created_at=utc_timestamp(),
            )

            answers: List[Dict] = []
            unanswerable: List[str] = []
            try:
                self.vector_index.ensure_collection(self.collection)
                for question in questions:
                    score, reason = self._grade(document, question)
                    answers.append({"question_id": question.question_id, "score": score, "reasoning": reason})
                    if score == -1:
                        unanswerable.append(question.question_id)
                scoring.status = "COMPLETED"
            except DocChatError as e:
                logger.error(f"Review of document {doc_id} failed: {e}")
                scoring.status = "FAILED"
                scoring.error = str(e)

            scoring.answers = answers
            scoring.unanswerable = unanswerable
            logger.info(
                f"Review of document {doc_id} {scoring.status}: "
                f"{len(answers)} graded, {len(unanswerable)} unanswerable"
            )
            return repository.save_scoring_session(scoring)

    def _grade(self, document: Document, question: Question) -> Tuple[int, str]:
        vector = self.embedder.embed_query(question.text)
        hits = self.vector_index.search(
            self.collection,
            vector,
            filter={"conversation_id": document.conversation_id},
            limit=self.search_limit,
        )
        context = "\n\n".join(hit.payload["text"] for hit in hits if hit.payload and hit.payload.get("text"))
        if not context:
            return -1, "No indexed content to evaluate."

        response = complete(
            self.llm,
            [
                SystemMessage(content=REVIEW_SYSTEM_PROMPT),
                HumanMessage(content=REVIEW_USER_PROMPT_TEMPLATE.format(context=context, question=question.text)),
            ],
        )
        return parse_graded_answer(response)
