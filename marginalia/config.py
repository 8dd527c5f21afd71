"""Configuration loading.

Rules:
- Base: ``marginalia_config.json`` at the project root (optional).
- Overrides: text files under ``config/``, then environment variables.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG_FILE = Path("marginalia_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _truthy(value: object) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v.strip()


class CorsConfig(BaseModel):
    origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class AuthConfig(BaseModel):
    identity_header: str = "X-User-Id"

    @field_validator("identity_header")
    @classmethod
    def header_must_be_token(cls, v: str) -> str:
        v = (v or "").strip()
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("auth.identity_header must be a non-empty header name")
        return v


class MigrationsConfig(BaseModel):
    auto_apply: bool = False
    directory: Optional[str] = None


class AppConfig(BaseModel):
    database: DatabaseConfig
    cors: CorsConfig = Field(default_factory=CorsConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    migrations: MigrationsConfig = Field(default_factory=MigrationsConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in ``config/``
    3) ``marginalia_config.json``
    4) Development defaults
    """
    base = _read_json_file(ROOT_CONFIG_FILE)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        if isinstance(cur, list):
            return ",".join(str(x) for x in cur)
        return str(cur) if cur is not None else default

    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    origins_text = _env("CORS_ORIGINS") or _read_config_file("cors.origins") or _base("cors.origins") or ""
    identity_header = _env("IDENTITY_HEADER") or _read_config_file("auth.identity_header") or _base(
        "auth.identity_header", "X-User-Id"
    )
    auto_apply_text = _env("AUTO_APPLY_MIGRATIONS") or _read_config_file("migrations.auto_apply") or _base(
        "migrations.auto_apply", "false"
    )
    migrations_dir = _env("MIGRATIONS_DIR") or _read_config_file("migrations.directory") or _base("migrations.directory")

    origins = [o.strip() for o in origins_text.split(",") if o.strip()]
    try:
        return AppConfig(
            database=DatabaseConfig(dsn=dsn),
            cors=CorsConfig(origins=origins) if origins else CorsConfig(),
            auth=AuthConfig(identity_header=str(identity_header)),
            migrations=MigrationsConfig(auto_apply=_truthy(auto_apply_text), directory=migrations_dir),
        )
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "CorsConfig",
    "AuthConfig",
    "MigrationsConfig",
    "load_config",
]
