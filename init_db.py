"""
Script to initialize the database with tables and seed data.
"""
from docchat.db.base import create_db_engine, create_session_factory
from docchat.db.init_db import init_db
from docchat.models import Base


def init() -> None:
    """Initialize database."""
    engine = create_db_engine()
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✅ Database tables created")

    print("Seeding initial data...")
    db = create_session_factory(engine)()
    try:
        init_db(db)
        print("✅ Initial data seeded")
    finally:
        db.close()

    print("🎉 Database initialization complete!")


if __name__ == "__main__":
    init()
