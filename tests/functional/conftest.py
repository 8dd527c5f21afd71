"""Functional test bootstrap.

Functional tests run against a file-backed SQLite database that is migrated
once per session and emptied before every test. The environment is pointed at
that database before any ``marginalia`` import so configuration and the
process engine agree on the DSN.
"""

from __future__ import annotations

import json
import os
import pathlib
from typing import Any, Callable, Dict, Iterator, Optional

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

os.environ["TEST_DATABASE_URL"] = f"sqlite+pysqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Migrations are applied explicitly below, not on app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"

SCHEMAS_DIR = _ROOT / "docs" / "schemas"
OWNER = "user-owner"
OTHER = "user-other"


@pytest.fixture(scope="session")
def engine():
    from marginalia.db.base import get_engine

    return get_engine(os.environ["TEST_DATABASE_URL"])


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap(engine) -> Iterator[None]:
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from marginalia.db.base import dispose_engine
    from marginalia.db.migrations_runner import apply_migrations

    apply_migrations(engine, migrations_dir=str(_ROOT / "migrations"))
    yield
    dispose_engine()


@pytest.fixture(autouse=True)
def clean_tables(engine) -> Iterator[None]:
    from sqlalchemy import text as sql_text

    with engine.begin() as conn:
        for table in ("comments", "markers", "sections", "resources"):
            conn.execute(sql_text(f"DELETE FROM {table}"))
    yield


@pytest.fixture
def repo(engine):
    from marginalia.logic.repository_resources import ResourceRepository

    return ResourceRepository(engine)


@pytest.fixture
def comment_repo(engine):
    from marginalia.logic.repository_comments import CommentRepository

    return CommentRepository(engine)


@pytest.fixture
def app(engine):
    from marginalia.config import load_config
    from marginalia.main import create_app

    return create_app(config=load_config(), engine=engine)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def as_user() -> Callable[[Optional[str]], Dict[str, str]]:
    """Return request headers identifying ``user_id`` (no header when None)."""

    def _headers(user_id: Optional[str]) -> Dict[str, str]:
        return {"X-User-Id": user_id} if user_id else {}

    return _headers


@pytest.fixture
def resource_payload() -> Callable[..., Dict[str, Any]]:
    """Build a POST /api/resources body with ``sections`` sections of two markers each."""

    def _payload(
        sections: int = 3,
        type: str = "book",
        is_public: bool = False,
        name: str = "The Pragmatic Reader",
    ) -> Dict[str, Any]:
        return {
            "name": name,
            "type": type,
            "author": "A. Author",
            "isPublic": is_public,
            "sections": [
                {
                    "title": f"Part {n}",
                    "markers": [
                        {"position": str(n * 10), "note": f"first note in {n}"},
                        {"position": str(n * 10 + 1), "note": f"second note in {n}", "type": "concept"},
                    ],
                }
                for n in range(1, sections + 1)
            ],
        }

    return _payload


@pytest.fixture
def create_resource(client, as_user, resource_payload) -> Callable[..., Dict[str, Any]]:
    """Create a resource over HTTP and return its wire representation."""

    def _create(owner: str = OWNER, **kwargs: Any) -> Dict[str, Any]:
        response = client.post("/api/resources", json=resource_payload(**kwargs), headers=as_user(owner))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture(scope="session")
def wire_validator() -> Callable[[str, Any], None]:
    """Validate an instance against one of the published wire schemas."""
    from jsonschema import Draft202012Validator
    from referencing import Registry, Resource as SchemaResource

    schemas = {p.name: json.loads(p.read_text(encoding="utf-8")) for p in SCHEMAS_DIR.glob("*.schema.json")}
    registry = Registry().with_resources(
        (name, SchemaResource.from_contents(schema)) for name, schema in schemas.items()
    )

    def _validate(schema_name: str, instance: Any) -> None:
        validator = Draft202012Validator(schemas[schema_name], registry=registry)
        errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
        assert not errors, [f"{list(e.path)}: {e.message}" for e in errors]

    return _validate
