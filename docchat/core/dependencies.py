"""
Dependency injection for FastAPI endpoints.

The long-lived clients (metadata store, object store, vector index, model
providers, job queue) are assembled once at startup into a ``Services``
container stored on ``app.state``.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Generator, Optional

from fastapi import Depends, Request
from langchain_core.language_models import BaseChatModel
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from docchat.core.config import settings
from docchat.core.document_processor import DocumentProcessor
from docchat.core.helpers.chunk_embedder import ChunkEmbedder
from docchat.core.helpers.chunker import TextChunker
from docchat.core.helpers.embedder import EmbeddingService
from docchat.core.helpers.extracter import DocumentExtractor
from docchat.core.helpers.knowledge import ReferenceKnowledgeLookup
from docchat.core.helpers.vector_index import PgVectorIndex, VectorIndex
from docchat.core.llm_config import LLMFactory
from docchat.core.review import DocumentReviewer
from docchat.db.base import create_db_engine, create_session_factory
from docchat.services.file_service import GCSFileService, ObjectStore
from docchat.services.task_queue import (
    PROCESS_DOCUMENT,
    PROCESS_DOCUMENT_FOR_REVIEW,
    CloudTasksQueue,
    JobRegistry,
    LocalTaskQueue,
    TaskQueue,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    engine: Engine
    session_factory: sessionmaker
    object_store: ObjectStore
    vector_index: VectorIndex
    embedder: EmbeddingService
    llm: BaseChatModel
    registry: JobRegistry
    task_queue: TaskQueue
    processor: DocumentProcessor
    reviewer: DocumentReviewer
    reference_lookup: ReferenceKnowledgeLookup


def default_task_queue(registry: JobRegistry) -> TaskQueue:
    if settings.QUEUE_BACKEND == "cloud_tasks":
        return CloudTasksQueue()
    return LocalTaskQueue(registry)


def assemble_services(
    engine: Engine,
    object_store: ObjectStore,
    vector_index: VectorIndex,
    embedder: EmbeddingService,
    llm: BaseChatModel,
    task_queue_factory: Optional[Callable[[JobRegistry], TaskQueue]] = None,
) -> Services:
    """Wire the pipeline around the given clients and register the job handlers."""
    session_factory = create_session_factory(engine)
    extractor = DocumentExtractor(object_store, temp_dir=settings.TEMP_DIR)
    chunk_embedder = ChunkEmbedder(TextChunker(), embedder)
    processor = DocumentProcessor(session_factory, extractor, chunk_embedder, vector_index)
    reviewer = DocumentReviewer(session_factory, processor, embedder, vector_index, llm)

    registry = JobRegistry()
    registry.register(PROCESS_DOCUMENT, processor.handle_job, on_exhausted=processor.handle_exhausted)
    registry.register(PROCESS_DOCUMENT_FOR_REVIEW, reviewer.handle_job, on_exhausted=reviewer.handle_exhausted)

    return Services(
        engine=engine,
        session_factory=session_factory,
        object_store=object_store,
        vector_index=vector_index,
        embedder=embedder,
        llm=llm,
        registry=registry,
        task_queue=(task_queue_factory or default_task_queue)(registry),
        processor=processor,
        reviewer=reviewer,
        reference_lookup=ReferenceKnowledgeLookup(vector_index, embedder),
    )


def build_services() -> Services:
    """Production wiring from settings."""
    engine = create_db_engine()
    vector_engine = engine
    if settings.vector_database_url != settings.DATABASE_URL:
        vector_engine = create_db_engine(settings.vector_database_url)

    logger.info(f"Building services (env={settings.ENV}, queue={settings.QUEUE_BACKEND})")
    return assemble_services(
        engine=engine,
        object_store=GCSFileService(),
        vector_index=PgVectorIndex(vector_engine, settings.EMBEDDING_DIMENSION),
        embedder=EmbeddingService(),
        llm=LLMFactory.create_llm(),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_db(services: Services = Depends(get_services)) -> Generator:
    """
    Dependency for database session.

    Yields:
        Database session
    """
    db: Session = services.session_factory()
    try:
        yield db
    finally:
        db.close()
