# WORKFLOW: Database engine and session management for the regions loader.
# Used by: Record writer, pipeline, CLI
# Functions:
# 1. get_engine() - Create an engine for one ingestion run
# 2. session_scope() - Session context that rolls back on error and always closes
# 3. prepare_regions_table() - Drop and recreate the regions table and its index
# 4. check_db_connection() - Connectivity check for the destination
#
# Database lifecycle:
# Run start: get_engine() -> prepare_regions_table() -> session_scope()
# Run body: session -> insert rows -> commit in batches
# Run end: session closed -> engine disposed by the caller

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def get_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create a database engine.

    Every run gets its own engine so that independent runs never share a
    connection pool.
    """
    url = database_url or settings.database_url
    echo = settings.database_echo if echo is None else echo
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            # A single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """
    Yield a database session bound to ``engine``.
    The session is rolled back on error and closed on every exit path.
    """
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    logger.debug("Database session created")
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
        logger.debug("Database session closed")


def prepare_regions_table(engine: Engine) -> None:
    """
    Drop the regions table if it exists, then create it with its name index.
    """
    from db.models import Region

    table = Region.__table__
    table.drop(bind=engine, checkfirst=True)
    table.create(bind=engine)
    logger.info(f"Prepared table {table.name} on {engine.url.render_as_string(hide_password=True)}")


def check_db_connection(engine: Engine) -> bool:
    """
    Check if database connection is working.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
