"""
Repositories providing the metadata store operations used by the pipeline.
"""
import logging
import time
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docchat.core.exceptions import DocumentAlreadyExistsError, NotFoundError
from docchat.models.cleanup import CleanupTask
from docchat.models.conversation import Conversation, Message, ShareSession
from docchat.models.document import Document, ProcessingStatus
from docchat.models.knowledge import Category, Question, ScoringSession
from docchat.utils.clock import utc_timestamp

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Document rows keyed by conversation."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        conversation_id: str,
        file_name: str,
        storage_key: str,
        file_type: str,
        doc_id: Optional[str] = None,
        review_requested: bool = False,
    ) -> Document:
        """
        Insert a QUEUED document. Fails if the document already exists.

        Raises:
            DocumentAlreadyExistsError: If the (conversation, doc) key is taken
        """
        document = Document(
            doc_id=doc_id or str(uuid.uuid4()),
            conversation_id=conversation_id,
            uploaded_at=utc_timestamp(),
            file_name=file_name,
            storage_key=storage_key,
            file_type=file_type,
            processing_status=ProcessingStatus.QUEUED,
            review_requested=review_requested,
        )
        self.db.add(document)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DocumentAlreadyExistsError(
                "Document with this ID already exists for this conversation.", cause=e
            )
        self.db.refresh(document)
        logger.info(f"Document created | doc_id={document.doc_id} | conversation_id={conversation_id}")
        return document

    def get(self, doc_id: str) -> Optional[Document]:
        return self.db.get(Document, doc_id)

    def get_for_conversation(self, conversation_id: str, doc_id: str) -> Document:
        document = self.db.execute(
            select(Document).where(Document.conversation_id == conversation_id, Document.doc_id == doc_id)
        ).scalar_one_or_none()
        if document is None:
            raise NotFoundError(f"Document {doc_id} not found in conversation {conversation_id}")
        return document

    def list_for_conversation(self, conversation_id: str) -> List[Document]:
        return list(
            self.db.execute(
                select(Document)
                .where(Document.conversation_id == conversation_id)
                .order_by(Document.uploaded_at)
            ).scalars()
        )

    def delete(self, document: Document) -> None:
        self.db.delete(document)
        self.db.commit()


class MessageRepository:
    """Messages partitioned by thread id and sorted by creation time."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, thread_id: str, text: str, is_user_message: bool, is_loading: bool = False) -> Message:
        message = Message(
            message_id=str(uuid.uuid4()),
            conversation_id=thread_id,
            created_at=utc_timestamp(),
            text=text,
            is_user_message=is_user_message,
            is_loading=is_loading,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def recent(self, thread_id: str, limit: int) -> List[Message]:
        """Last ``limit`` messages of a thread, returned oldest first."""
        newest_first = self.db.execute(
            select(Message)
            .where(Message.conversation_id == thread_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
        ).scalars().all()
        return list(reversed(newest_first))

    def page(self, thread_id: str, limit: int, cursor: Optional[str] = None) -> Tuple[List[Message], Optional[str]]:
        """Newest-first page. The cursor is the ``created_at`` of the last item seen."""
        stmt = select(Message).where(Message.conversation_id == thread_id)
        if cursor:
            stmt = stmt.where(Message.created_at < cursor)
        items = list(self.db.execute(stmt.order_by(Message.created_at.desc()).limit(limit + 1)).scalars())
        next_cursor = None
        if len(items) > limit:
            items = items[:limit]
            next_cursor = items[-1].created_at
        return items, next_cursor

    def delete_for_threads(self, thread_ids: Iterable[str]) -> int:
        thread_ids = list(thread_ids)
        if not thread_ids:
            return 0
        result = self.db.execute(delete(Message).where(Message.conversation_id.in_(thread_ids)))
        self.db.commit()
        return result.rowcount or 0


class ConversationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, name: Optional[str] = None) -> Conversation:
        conversation = Conversation(
            conversation_id=str(uuid.uuid4()),
            user_id=user_id,
            name=name or "untitled conversation",
            created_at=utc_timestamp(),
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)
        logger.info(f"Conversation created | conversation_id={conversation.conversation_id} | user_id={user_id}")
        return conversation

    def get(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    def list_for_user(self, user_id: str) -> List[Conversation]:
        return list(
            self.db.execute(
                select(Conversation)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.created_at.desc())
            ).scalars()
        )

    def delete(self, conversation_id: str) -> None:
        self.db.execute(delete(Conversation).where(Conversation.conversation_id == conversation_id))
        self.db.commit()


class ShareSessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, conversation_id: str, expires_at: Optional[int] = None) -> ShareSession:
        share = ShareSession(
            share_id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            is_active=True,
            created_at=utc_timestamp(),
            expires_at=expires_at,
        )
        self.db.add(share)
        self.db.commit()
        self.db.refresh(share)
        return share

    def get_active(self, share_id: str, conversation_id: str) -> ShareSession:
        share = self.db.get(ShareSession, share_id)
        if (
            share is None
            or share.conversation_id != conversation_id
            or not share.is_active
            or (share.expires_at is not None and share.expires_at <= int(time.time()))
        ):
            raise NotFoundError(f"No active share session {share_id} for conversation {conversation_id}")
        return share

    def deactivate(self, share_id: str, conversation_id: str) -> ShareSession:
        share = self.db.get(ShareSession, share_id)
        if share is None or share.conversation_id != conversation_id:
            raise NotFoundError(f"Share session {share_id} not found")
        share.is_active = False
        self.db.commit()
        return share

    def list_ids_for_conversation(self, conversation_id: str) -> List[str]:
        return list(
            self.db.execute(
                select(ShareSession.share_id).where(ShareSession.conversation_id == conversation_id)
            ).scalars()
        )

    def delete_for_conversation(self, conversation_id: str) -> None:
        self.db.execute(delete(ShareSession).where(ShareSession.conversation_id == conversation_id))
        self.db.commit()


class KnowledgeRepository:
    """Categories, reference questions and scoring sessions."""

    def __init__(self, db: Session):
        self.db = db

    def create_category(self, name: str, qualification_cutoff: int = 50) -> Category:
        category = Category(
            category_id=str(uuid.uuid4()),
            name=name,
            qualification_cutoff=qualification_cutoff,
            created_at=utc_timestamp(),
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def list_categories(self) -> List[Category]:
        return list(self.db.execute(select(Category).order_by(Category.created_at)).scalars())

    def create_question(self, text: str, answer: Optional[str] = None, category_id: Optional[str] = None) -> Question:
        if category_id is not None and self.db.get(Category, category_id) is None:
            raise NotFoundError(f"Category {category_id} not found")
        question = Question(
            question_id=str(uuid.uuid4()),
            category_id=category_id,
            text=text,
            answer=answer,
            created_at=utc_timestamp(),
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def get_question(self, question_id: str) -> Optional[Question]:
        return self.db.get(Question, question_id)

    def list_questions(self, category_id: Optional[str] = None) -> List[Question]:
        stmt = select(Question)
        if category_id:
            stmt = stmt.where(Question.category_id == category_id)
        return list(self.db.execute(stmt.order_by(Question.created_at)).scalars())

    def delete_question(self, question_id: str) -> None:
        question = self.db.get(Question, question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        self.db.delete(question)
        self.db.commit()

    def save_scoring_session(self, scoring: ScoringSession) -> ScoringSession:
        self.db.add(scoring)
        self.db.commit()
        self.db.refresh(scoring)
        return scoring

    def list_scoring_sessions(self, conversation_id: str) -> List[ScoringSession]:
        return list(
            self.db.execute(
                select(ScoringSession)
                .where(ScoringSession.conversation_id == conversation_id)
                .order_by(ScoringSession.created_at)
            ).scalars()
        )

    def delete_scoring_sessions(self, conversation_id: str) -> None:
        self.db.execute(delete(ScoringSession).where(ScoringSession.conversation_id == conversation_id))
        self.db.commit()


class CleanupTaskRepository:
    def __init__(self, db: Session):
        self.db = db

    def record(self, resource_type: str, resource_key: str, error: str, payload: Optional[dict] = None) -> CleanupTask:
        task = CleanupTask(
            resource_type=resource_type,
            resource_key=resource_key,
            payload=payload,
            error=error,
            attempts=1,
            created_at=utc_timestamp(),
        )
        self.db.add(task)
        self.db.commit()
        return task

    def list_pending(self) -> List[CleanupTask]:
        return list(self.db.execute(select(CleanupTask).order_by(CleanupTask.id)).scalars())
