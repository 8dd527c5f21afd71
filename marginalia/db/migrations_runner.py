"""Lightweight SQL migrations runner.

Applies ``*.sql`` files in lexical order from a migrations directory and
records each applied filename in the ``schema_migrations`` table of the target
database, so a fresh database always receives the full schema. Rollback
scripts are skipped in forward runs.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

_JOURNAL_DDL = (
    "CREATE TABLE IF NOT EXISTS schema_migrations ("
    "filename VARCHAR(255) PRIMARY KEY, applied_at VARCHAR(32) NOT NULL)"
)


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        if "rollback" in p.name.lower():
            continue
        yield p


def _strip_sql_comments(sql: str) -> str:
    """Drop ``--`` comments up to end of line, leaving quoted literals intact."""
    out: list[str] = []
    for line in sql.splitlines():
        in_quote = False
        cut = len(line)
        for i, ch in enumerate(line):
            if ch == "'":
                in_quote = not in_quote
            elif not in_quote and line.startswith("--", i):
                cut = i
                break
        out.append(line[:cut])
    return "\n".join(out)


def split_sql_statements(sql: str) -> list[str]:
    """Split a script into statements on ';' once comments are removed.

    Blank segments and explicit transaction control are dropped.
    """
    segments: list[str] = []
    current: list[str] = []
    in_quote = False
    for ch in _strip_sql_comments(sql):
        if ch == "'":
            in_quote = not in_quote
        if ch == ";" and not in_quote:
            segments.append("".join(current))
            current = []
            continue
        current.append(ch)
    segments.append("".join(current))

    statements: list[str] = []
    for stmt in segments:
        s = stmt.strip()
        if not s or s.upper() in {"BEGIN", "COMMIT", "END"}:
            continue
        statements.append(s)
    return statements


def _exec_sql_compat(conn: Connection, sql: str) -> None:
    """Execute a possibly multi-statement SQL script.

    pysqlite refuses several statements per execute(), so SQLite scripts are
    split into single statements. Other dialects receive the script as-is.
    """
    name = (getattr(conn.dialect, "name", "") or "").lower()
    if "sqlite" not in name:
        conn.exec_driver_sql(sql)
        return
    for stmt in split_sql_statements(sql):
        conn.exec_driver_sql(stmt)


def applied_migrations(engine: Engine) -> set[str]:
    with engine.begin() as conn:
        conn.execute(sql_text(_JOURNAL_DDL))
        rows = conn.execute(sql_text("SELECT filename FROM schema_migrations")).fetchall()
    return {str(r[0]) for r in rows}


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] | None = None) -> list[str]:
    """Apply pending migrations; returns the filenames applied by this call.

    Each file runs in its own transaction together with its journal row.
    """
    root = Path(migrations_dir) if migrations_dir else DEFAULT_MIGRATIONS_DIR
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", root)
        return []

    done = applied_migrations(engine)
    newly_applied: list[str] = []
    for sql_path in _iter_sql_files(root):
        fname = sql_path.name
        if fname in done:
            continue
        sql = sql_path.read_text(encoding="utf-8")
        if not sql.strip():
            continue
        try:
            with engine.begin() as conn:
                _exec_sql_compat(conn, sql)
                conn.execute(
                    sql_text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :at)"),
                    {
                        "f": fname,
                        "at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
                    },
                )
        except Exception:
            logger.error("migration_failed file=%s", fname, exc_info=True)
            raise
        logger.info("migration_applied file=%s", fname)
        newly_applied.append(fname)
    return newly_applied


__all__ = ["apply_migrations", "applied_migrations", "split_sql_statements", "DEFAULT_MIGRATIONS_DIR"]
