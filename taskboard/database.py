"""Database configuration and session management."""

import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker

from taskboard.config import get_settings

settings = get_settings()

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
    echo=settings.debug,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

logger = logging.getLogger("taskboard.database")


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    # Register every model on Base.metadata before create_all
    import taskboard.models  # noqa: F401

    logger.info("Initializing database tables...")
    logger.info("Database URL: %s", settings.database_url)
    Base.metadata.create_all(bind=engine)
    tables = inspect(engine).get_table_names()
    logger.info("Available tables after init: %s", tables)
