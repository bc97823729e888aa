"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
import logging

from config import DATABASE_URL, SEED_SAMPLE_DATA
from models import Base

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Pool settings for the configured backend."""
    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(seed: bool = SEED_SAMPLE_DATA) -> None:
    """Initialize database tables and optionally seed sample catalog data."""
    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    from services.sample_data import seed_sample_data

    db = SessionLocal()
    try:
        if seed_sample_data(db):
            logger.info("Seeded database with sample catalog")
    finally:
        db.close()
