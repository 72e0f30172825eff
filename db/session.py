"""
Entity store session - SQLAlchemy engine and session factory.

Provides the database session holding the current state of return
records, collection orders, shipment manifests and NCR reports.
The default URL is an in-memory SQLite database shared by every
session of the process.
"""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool

from config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str = None, echo: bool = None) -> Engine:
    """
    Create an engine for the entity store.

    In-memory SQLite needs a single shared connection, otherwise every
    new connection would open an empty database.
    """
    url = url or settings.DATABASE_URL
    echo = settings.DATABASE_ECHO if echo is None else echo

    if url.startswith("sqlite") and (url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    return create_engine(url, pool_pre_ping=True, echo=echo)


# Create SQLAlchemy engine for the configured store
engine = make_engine()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_session() as db:
            db.query(...)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = None):
    """Initialize database tables."""
    from models import return_record, collection, ncr, sequence  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def test_connection() -> bool:
    """Test database connection."""
    try:
        with get_session() as db:
            db.execute(text("SELECT 1"))
        logger.info(f"Entity store connection successful: {engine.url.render_as_string(hide_password=True)}")
        return True
    except Exception as e:
        logger.error(f"Entity store connection failed: {e}")
        return False
