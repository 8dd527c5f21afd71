"""Application factory for the Marginalia service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from marginalia.config import AppConfig, load_config
from marginalia.db.base import get_engine
from marginalia.db.migrations_runner import apply_migrations
from marginalia.http.problem import (
    handle_domain_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from marginalia.http.request_id import RequestIdMiddleware
from marginalia.logging_setup import configure_logging
from marginalia.logic.errors import DomainError
from marginalia.middleware.cors import apply_cors
from marginalia.routes import api_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the ASGI app.

    ``config`` defaults to ``load_config()`` and ``engine`` to the process
    engine for the configured DSN; tests pass their own.
    """
    configure_logging()
    config = config or load_config()
    engine = engine or get_engine(config.database.dsn)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if config.migrations.auto_apply:
            applied = apply_migrations(engine, config.migrations.directory)
            logger.info("startup_migrations_applied count=%s", len(applied))
        else:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
        yield

    app = FastAPI(title="Marginalia", lifespan=lifespan)
    app.state.engine = engine
    app.state.identity_header = config.auth.identity_header

    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    apply_cors(app, origins=config.cors.origins)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api")

    @app.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
        except SQLAlchemyError:
            logger.error("Health DB check failed", exc_info=True)
            return JSONResponse({"status": "degraded", "db": False}, status_code=503)
        return {"status": "ok", "db": True}

    logger.info(
        "app_created dialect=%s cors_origins=%s identity_header=%s",
        engine.dialect.name,
        config.cors.origins,
        config.auth.identity_header,
    )
    return app


# No module-level app instance; serve with `uvicorn --factory marginalia.main:create_app`.
