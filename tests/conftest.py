"""Test configuration and fixtures for docchat tests."""
import io
import math
import re
import zlib
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import MagicMock

import pytest
from docx import Document as DocxDocument
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from docchat.core.dependencies import assemble_services
from docchat.core.exceptions import EmbeddingError, ObjectStoreError, VectorIndexError
from docchat.core.helpers.extracter import DOCX_MIME_TYPE
from docchat.core.helpers.vector_index import SearchHit, VectorIndex, VectorPoint
from docchat.db.base import create_session_factory
from docchat.db.repositories import DocumentRepository
from docchat.models import Base
from docchat.services.file_service import ObjectStore
from docchat.services.task_queue import LocalTaskQueue

EMBEDDING_DIMS = 256
_STOPWORDS = {"a", "an", "and", "are", "is", "of", "on", "the", "to", "what", "when", "which", "who"}


class FakeObjectStore(ObjectStore):
    """In-memory object store."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_delete: set = set()
        self.deleted: List[str] = []

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self.objects[key] = data
        return key

    def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise ObjectStoreError(f"No object '{key}'")
        return self.objects[key]

    def delete(self, key: str) -> None:
        if key in self.fail_delete:
            raise ObjectStoreError(f"Delete of '{key}' refused")
        self.objects.pop(key, None)
        self.deleted.append(key)


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _matches(payload: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    return all(payload.get(key) == value for key, value in (filter or {}).items())


class FakeVectorIndex(VectorIndex):
    """In-memory vector index with cosine scoring and exact-match filters."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, VectorPoint]] = {}
        self.upserted_points = 0
        self.search_calls: List[Dict[str, Any]] = []
        self.fail_search = False
        self.fail_upsert = False
        self.fail_delete = False

    def ensure_collection(self, collection: str) -> None:
        self.collections.setdefault(collection, {})

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        if self.fail_upsert:
            raise VectorIndexError("upsert refused")
        dims = {len(p.vector) for p in points}
        assert len(dims) <= 1, "mixed dimensionality"
        store = self.collections.setdefault(collection, {})
        for point in points:
            store[point.id] = point
        self.upserted_points += len(points)

    def search(self, collection, vector, filter=None, limit=5, with_payload=True) -> List[SearchHit]:
        self.search_calls.append({"collection": collection, "filter": filter, "limit": limit})
        if self.fail_search:
            raise VectorIndexError("search refused")
        points = [p for p in self.collections.get(collection, {}).values() if _matches(p.payload, filter)]
        ranked = sorted(points, key=lambda p: _cosine(vector, p.vector), reverse=True)[:limit]
        return [
            SearchHit(id=p.id, score=_cosine(vector, p.vector), payload=dict(p.payload) if with_payload else None)
            for p in ranked
        ]

    def delete(self, collection: str, filter: Dict[str, Any]) -> None:
        if self.fail_delete:
            raise VectorIndexError("delete refused")
        store = self.collections.get(collection, {})
        for point_id in [pid for pid, p in store.items() if _matches(p.payload, filter)]:
            del store[point_id]

    def points(self, collection: str) -> List[VectorPoint]:
        return list(self.collections.get(collection, {}).values())


class FakeEmbedder:
    """Deterministic bag-of-words embedding; no external API calls."""

    def __init__(self, dims: int = EMBEDDING_DIMS):
        self.dims = dims
        self.calls = 0
        self.errors: List[Exception] = []

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dims
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            if token in _STOPWORDS:
                continue
            vector[zlib.crc32(token.encode()) % self.dims] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    def _check(self, texts: List[str]) -> None:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        if not texts or any(not t.strip() for t in texts):
            raise EmbeddingError("Cannot embed empty text")

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self._check(texts)
        return [self._vector(t) for t in texts]

    def embed_query(self, query: str) -> List[float]:
        self._check([query])
        return self._vector(query)


def make_docx(*paragraphs: str) -> bytes:
    doc = DocxDocument()
    for paragraph in paragraphs:
        doc.add_paragraph(paragraph)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def ai_reply(text: str) -> AIMessage:
    return AIMessage(content=text)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def llm() -> MagicMock:
    """Chat model double; set ``llm.invoke.return_value`` or ``side_effect`` per test."""
    model = MagicMock()
    model.invoke.return_value = ai_reply("The deadline is March 5th.")
    return model


@pytest.fixture
def services(engine, object_store, vector_index, embedder, llm):
    services = assemble_services(
        engine=engine,
        object_store=object_store,
        vector_index=vector_index,
        embedder=embedder,
        llm=llm,
        task_queue_factory=lambda registry: LocalTaskQueue(
            registry, max_attempts=3, backoff_seconds=0, eager=True
        ),
    )
    yield services
    services.task_queue.shutdown()


@pytest.fixture
def client(services):
    from docchat.main import create_app

    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def stored_docx(db, object_store):
    """Factory storing a DOCX and creating its QUEUED document row."""

    def create(*paragraphs: str, conversation_id: str = "conv-1", file_name: str = "notes.docx"):
        key = f"uploads/{file_name}"
        object_store.put(key, make_docx(*paragraphs), DOCX_MIME_TYPE)
        return DocumentRepository(db).create(
            conversation_id=conversation_id,
            file_name=file_name,
            storage_key=key,
            file_type=DOCX_MIME_TYPE,
        )

    return create
