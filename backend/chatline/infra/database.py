from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from chatline.config import get_settings
from chatline.models.base import Base
from chatline.utils.logger import logger

# =========================
# ENGINE CONFIGURATION
# =========================

engine: Optional[Engine] = None

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # SQLite is used for local runs and tests; sessions hop between threads.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,         # Maintain 5 connections in the pool
        max_overflow=10,     # Allow 10 extra connections if needed
        pool_recycle=3600,   # Recycle connections every hour
        echo=False,
    )


def configure_database(database_url: Optional[str] = None) -> Engine:
    """
    Bind SessionLocal to a new engine. Replaces (and disposes) any engine
    configured earlier.
    """
    global engine
    if engine is not None:
        engine.dispose()
    engine = build_engine(database_url or get_settings().get_database_url())
    SessionLocal.configure(bind=engine)
    return engine


def get_engine() -> Engine:
    if engine is None:
        return configure_database()
    return engine


# =========================
# DATABASE FUNCTIONS
# =========================

def get_db():
    """
    FastAPI dependency to provide a DB session to routes.
    Usage:
        def my_route(db: Session = Depends(get_db)):
            ...
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: Optional[sessionmaker] = None):
    """
    Context manager for standalone DB operations; commits on success.
    Usage:
        with db_session() as db:
            user = db.query(User).first()
    """
    if session_factory is None:
        get_engine()
        session_factory = SessionLocal
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables for the registered models."""
    # Imported for their side effect of registering tables on Base.metadata
    from chatline.models import message, user  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created")


def reset_db() -> None:
    """Drop and recreate all tables."""
    from chatline.models import message, user  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables recreated")


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed", extra={"error": str(e)})
        return False
