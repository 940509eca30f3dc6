"""
Vector index adapter: upsert, filtered similarity search and delete.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docchat.core.exceptions import VectorIndexError
from docchat.models.vector_point import VectorBase, vector_point_model

logger = logging.getLogger(__name__)


@dataclass
class VectorPoint:
    id: str
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    id: str
    score: float
    payload: Optional[Dict[str, Any]] = None


class VectorIndex(ABC):
    """
    Similarity index contract.

    Filters are dicts of exact-match payload key/value pairs combined with AND.
    """

    @abstractmethod
    def ensure_collection(self, collection: str) -> None:
        """Create the collection if it does not exist."""

    @abstractmethod
    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        """Insert or replace points by id."""

    @abstractmethod
    def search(
        self,
        collection: str,
        vector: List[float],
        filter: Optional[Dict[str, Any]] = None,
        limit: int = 5,
        with_payload: bool = True,
    ) -> List[SearchHit]:
        """Return the closest points, best first."""

    @abstractmethod
    def delete(self, collection: str, filter: Dict[str, Any]) -> None:
        """Remove every point matching the filter."""


class PgVectorIndex(VectorIndex):
    """
    pgvector-backed index. One table per embedding dimensionality, partitioned
    by a ``collection`` column, payload stored as JSONB.
    """

    def __init__(self, engine: Engine, dimension: int):
        self.engine = engine
        self.dimension = dimension
        self.model = vector_point_model(dimension)
        self._ready = False
        self._lock = threading.Lock()

    def ensure_collection(self, collection: str) -> None:
        with self._lock:
            if self._ready:
                return
            try:
                with self.engine.begin() as conn:
                    conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                VectorBase.metadata.create_all(self.engine, tables=[self.model.__table__])
            except SQLAlchemyError as e:
                logger.error(f"Error ensuring vector collection '{collection}': {e}")
                raise VectorIndexError("Failed to ensure vector collection exists", cause=e)
            self._ready = True
            logger.info(f"Vector table ready for collection '{collection}' ({self.dimension} dimensions)")

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        if not points:
            return
        for point in points:
            if len(point.vector) != self.dimension:
                raise VectorIndexError(
                    f"Point {point.id} has {len(point.vector)} dimensions, index expects {self.dimension}"
                )
        rows = [
            {
                "collection": collection,
                "point_id": point.id,
                "embedding": point.vector,
                "payload": point.payload,
            }
            for point in points
        ]
        stmt = insert(self.model).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["collection", "point_id"],
            set_={"embedding": stmt.excluded.embedding, "payload": stmt.excluded.payload},
        )
        try:
            with Session(self.engine) as session, session.begin():
                session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Upsert of {len(points)} points into '{collection}' failed: {e}")
            raise VectorIndexError(f"Failed to upsert points into '{collection}'", cause=e)
        logger.info(f"Upserted {len(points)} points into '{collection}'")

    def search_statement(self, collection: str, vector: List[float], filter: Optional[Dict[str, Any]], limit: int):
        row = self.model
        distance = row.embedding.cosine_distance(vector).label("distance")
        stmt = select(row.point_id, row.payload, distance).where(row.collection == collection)
        if filter:
            stmt = stmt.where(row.payload.contains(filter))
        return stmt.order_by(distance).limit(limit)

    def delete_statement(self, collection: str, filter: Dict[str, Any]):
        row = self.model
        return delete(row).where(row.collection == collection, row.payload.contains(filter))

    def search(
        self,
        collection: str,
        vector: List[float],
        filter: Optional[Dict[str, Any]] = None,
        limit: int = 5,
        with_payload: bool = True,
    ) -> List[SearchHit]:
        # an index nothing was written to yet is empty, not broken
        self.ensure_collection(collection)
        stmt = self.search_statement(collection, vector, filter, limit)
        try:
            with Session(self.engine) as session:
                results = session.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error(f"Search in '{collection}' failed: {e}")
            raise VectorIndexError(f"Failed to search '{collection}'", cause=e)

        return [
            SearchHit(
                id=r.point_id,
                score=1.0 - float(r.distance),
                payload=dict(r.payload) if with_payload else None,
            )
            for r in results
        ]

    def delete(self, collection: str, filter: Dict[str, Any]) -> None:
        if not filter:
            raise VectorIndexError("Refusing to delete without a filter")
        self.ensure_collection(collection)
        stmt = self.delete_statement(collection, filter)
        try:
            with Session(self.engine) as session, session.begin():
                result = session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Delete from '{collection}' with filter {filter} failed: {e}")
            raise VectorIndexError(f"Failed to delete points from '{collection}'", cause=e)
        logger.info(f"Deleted {result.rowcount} points from '{collection}' matching {filter}")
