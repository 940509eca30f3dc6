"""
Database initialization and seeding.
"""
import logging

from sqlalchemy.orm import Session

from docchat.db.repositories import KnowledgeRepository

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"


def init_db(db: Session) -> None:
    """
    Initialize database with default data.

    Args:
        db: Database session
    """
    # Reference questions need somewhere to live
    repository = KnowledgeRepository(db)
    if not repository.list_categories():
        category = repository.create_category(DEFAULT_CATEGORY)
        logger.info(f"Default category created ({category.category_id})")
