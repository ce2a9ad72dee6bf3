"""SQLAlchemy engine for the analytics database.

Single shared engine with connection pooling.  Every gateway query runs
through `execute_readonly`, which sets the transaction to READ ONLY
before executing.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def _connect_args() -> dict[str, Any]:
    settings = get_settings()
    args: dict[str, Any] = {"connect_timeout": settings.db_connect_timeout_seconds}
    if settings.database_ssl_root_cert:
        args["sslmode"] = "verify-full"
        args["sslrootcert"] = settings.database_ssl_root_cert
    return args


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_recycle=1800,
            connect_args=_connect_args(),
            echo=False,
        )
        logger.info("DB engine created  url=%s", _engine.url.render_as_string(hide_password=True))
    return _engine


@contextmanager
def readonly_connection() -> Generator[Connection, None, None]:
    """Yield a connection set to READ ONLY transaction mode.

    The connection is returned to the pool on exit; the transaction is
    rolled back since nothing can have been written.
    """
    engine = get_engine()
    conn = engine.connect()
    try:
        conn.execute(text("SET TRANSACTION READ ONLY"))
        yield conn
    finally:
        conn.close()
