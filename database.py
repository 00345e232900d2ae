"""
Database connection and session management for MediTrack

The engine is a process-wide handle created lazily on first use and
released explicitly with close_db().
"""

import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator, Optional

from config import settings


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None

# Session factory, bound to the engine on first use
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False
)

# Base class for ORM models
Base = declarative_base()


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine configured for the given database URL"""
    if url.startswith("sqlite"):
        # SQLite specific configuration
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )
        _enable_sqlite_foreign_keys(engine)
    else:
        # PostgreSQL or other databases
        engine = create_engine(
            url,
            echo=echo,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True
        )
    return engine


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first call"""
    global _engine
    if _engine is None:
        _engine = create_db_engine(settings.DATABASE_URL, settings.DATABASE_ECHO)
        SessionLocal.configure(bind=_engine)
        logger.info(f"Database engine created for {settings.DATABASE_URL}")
    return _engine


def close_db() -> None:
    """Dispose of the process-wide engine. The next get_engine() reopens it."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database engine closed")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.
    Automatically closes session after request.

    Usage:
        @app.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session.
    Use this for background tasks or non-FastAPI contexts.

    Usage:
        with get_db_context() as db:
            db.query(Item).all()
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize database tables.
    Creates all tables defined in models.
    """
    # Import models to register them with Base
    import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info(f"Database initialized at: {settings.DATABASE_URL}")


class DatabaseHealthCheck:
    """Database health check utilities"""

    @staticmethod
    def is_connected() -> bool:
        """Check if database is connected"""
        try:
            with get_engine().connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database health check failed")
            return False


# Export commonly used items
__all__ = [
    "SessionLocal",
    "Base",
    "create_db_engine",
    "get_engine",
    "close_db",
    "get_db",
    "get_db_context",
    "init_db",
    "DatabaseHealthCheck"
]
