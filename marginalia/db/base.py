"""SQLAlchemy engine construction.

The service targets PostgreSQL in production and SQLite for local development
and tests. No ORM models are defined; repositories issue textual SQL through
an ``Engine`` and open one transaction per operation.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


# Connection factory cache; holds no application data
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> Engine:
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite") and ":memory:" in url:
        # Keep a single in-memory DB connection shared across the process
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    elif url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    logger.info("db_engine_created dialect=%s", engine.dialect.name)
    return engine


def get_engine(url: str | None = None) -> Engine:
    """Return the process Engine for ``url`` (or the configured URL).

    The Engine is rebuilt when a different URL is requested, which lets tests
    point the service at their own database.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()
    if _ENGINE is None or _ENGINE_URL != resolved_url:
        _ENGINE = build_engine(resolved_url)
        _ENGINE_URL = resolved_url
    return _ENGINE


def dispose_engine() -> None:
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None


__all__ = ["get_engine", "build_engine", "dispose_engine"]
