"""
Vector index table backing PgVectorIndex.

Kept on its own declarative base: the index may live in a different database
than the metadata store and is created by ``PgVectorIndex.ensure_collection``.
"""
from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

VectorBase = declarative_base()

_point_classes = {}


def vector_point_model(dimension: int):
    """Return the mapped point class for an embedding dimensionality."""
    if dimension in _point_classes:
        return _point_classes[dimension]

    class VectorPointRow(VectorBase):
        __tablename__ = f"vector_points_{dimension}"
        __table_args__ = (
            Index(f"ix_vector_points_{dimension}_payload", "payload", postgresql_using="gin"),
        )

        collection = Column(String, primary_key=True)
        point_id = Column(String(36), primary_key=True)
        embedding = Column(Vector(dimension), nullable=False)
        payload = Column(JSONB, nullable=False, default=dict)

    _point_classes[dimension] = VectorPointRow
    return VectorPointRow
