"""
Database session and base configuration.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from docchat.core.config import settings

Base = declarative_base()


def create_db_engine(database_url: str = "", env: str = "") -> Engine:
    """
    Build the metadata store engine.

    Args:
        database_url: SQLAlchemy URL (defaults to settings.DATABASE_URL)
        env: Deployment environment (defaults to settings.ENV)

    Returns:
        Configured SQLAlchemy engine
    """
    database_url = database_url or settings.DATABASE_URL
    env = env or settings.ENV

    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    if env == "production":
        # Production: no client-side pooling, the pooler in front of Postgres owns connections
        return create_engine(
            database_url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args={
                "options": "-c statement_timeout=30000"  # 30s timeout
            }
        )

    # Development: Use small pool
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=3600
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
