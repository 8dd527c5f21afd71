"""Database bootstrap utilities.

Exposes engine construction and the SQL migrations runner. The DB layer does
not define ORM models; repositories in ``marginalia.logic`` issue SQL directly.
"""

from marginalia.db.base import build_engine, dispose_engine, get_engine
from marginalia.db.migrations_runner import apply_migrations

__all__ = [
    "build_engine",
    "dispose_engine",
    "get_engine",
    "apply_migrations",
]
