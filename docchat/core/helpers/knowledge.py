"""
Secondary knowledge source: curated answers to reference questions.

Reference questions are embedded into their own collection. At answer time
the user's query is matched against them and each hit is resolved to the
curated answer stored on the question row. Any failure on this path is logged
and skipped; it never breaks the main response.
"""
import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session

from docchat.core.config import settings
from docchat.core.exceptions import DocChatError
from docchat.core.helpers.embedder import EmbeddingService
from docchat.core.helpers.vector_index import VectorIndex, VectorPoint
from docchat.db.repositories import KnowledgeRepository
from docchat.models.knowledge import Question

logger = logging.getLogger(__name__)


@dataclass
class ReferenceAnswer:
    question: str
    answer: str
    score: float


class ReferenceKnowledgeLookup:
    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: EmbeddingService,
        collection: str = settings.REFERENCE_COLLECTION,
        limit: int = settings.REFERENCE_RESULT_LIMIT,
    ):
        self.vector_index = vector_index
        self.embedder = embedder
        self.collection = collection
        self.limit = limit

    def index_question(self, question: Question) -> None:
        """Embed a reference question into the reference collection."""
        vector = self.embedder.embed_query(question.text)
        self.vector_index.ensure_collection(self.collection)
        self.vector_index.upsert(
            self.collection,
            [
                VectorPoint(
                    id=question.question_id,
                    vector=vector,
                    payload={"question_id": question.question_id, "category_id": question.category_id},
                )
            ],
        )

    def remove_question(self, question_id: str) -> None:
        self.vector_index.delete(self.collection, {"question_id": question_id})

    def lookup(self, db: Session, query_vector: List[float]) -> List[ReferenceAnswer]:
        """Curated answers for the questions closest to the query."""
        try:
            hits = self.vector_index.search(self.collection, query_vector, limit=self.limit)
        except DocChatError as e:
            logger.warning(f"Reference search failed, continuing without curated answers: {e}")
            return []

        repository = KnowledgeRepository(db)
        answers: List[ReferenceAnswer] = []
        for hit in hits:
            question_id = (hit.payload or {}).get("question_id")
            try:
                question = repository.get_question(question_id) if question_id else None
            except Exception as e:
                logger.warning(f"Reference lookup for question {question_id} failed: {e}")
                continue
            if question is None or not question.answer:
                logger.info(f"Reference hit {question_id} has no curated answer, skipping")
                continue
            answers.append(ReferenceAnswer(question=question.text, answer=question.answer, score=hit.score))
        return answers
