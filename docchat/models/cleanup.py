"""
Failed cascade-delete steps kept for a later reconciliation sweep.
"""
from sqlalchemy import JSON, Column, Integer, String, Text

from docchat.db.base import Base


class CleanupTask(Base):
    __tablename__ = "cleanup_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_type = Column(String(16), nullable=False)  # object, vectors
    resource_key = Column(String, nullable=False)
    payload = Column(JSON, nullable=True)  # vector filter for resource_type == "vectors"
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    created_at = Column(String, nullable=False)
