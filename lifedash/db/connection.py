"""SQLAlchemy engine factory & read-only connections.

Engines are created explicitly and passed into each component; the API
keeps one per application on ``app.state``.  All assistant reads run
through `readonly_connection`, which on PostgreSQL sets the transaction
to READ ONLY and applies a per-statement timeout.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from lifedash.core.config import Settings, get_settings
from lifedash.core.logging import get_logger

logger = get_logger(__name__)


def create_store_engine(settings: Settings | None = None, url: str | None = None, **kwargs) -> Engine:
    """Create a pooled engine for the dashboard store."""
    settings = settings or get_settings()
    if url is None:
        url = settings.database_url
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 10)
    engine = create_engine(url, echo=False, **kwargs)
    logger.info("DB engine created  dialect=%s", engine.dialect.name)
    return engine


@contextmanager
def readonly_connection(engine: Engine, timeout_ms: int | None = None) -> Generator[Connection, None, None]:
    """Yield a connection that cannot write.

    On PostgreSQL the transaction is READ ONLY and bounded by
    ``statement_timeout``.  The transaction is rolled back and the
    connection returned to the pool on exit.
    """
    conn = engine.connect()
    try:
        if engine.dialect.name == "postgresql":
            conn.execute(text("SET TRANSACTION READ ONLY"))
            if timeout_ms:
                conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        yield conn
    finally:
        conn.rollback()
        conn.close()
