"""Per-request repository construction.

Repositories are built for each request from the engine attached to the
application at startup; there is no module-level repository or data store.
"""

from __future__ import annotations

from fastapi import Request
from sqlalchemy.engine import Engine

from marginalia.logic.repository_comments import CommentRepository
from marginalia.logic.repository_resources import ResourceRepository


def get_app_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_resource_repository(request: Request) -> ResourceRepository:
    return ResourceRepository(get_app_engine(request))


def get_comment_repository(request: Request) -> CommentRepository:
    return CommentRepository(get_app_engine(request))


__all__ = ["get_app_engine", "get_resource_repository", "get_comment_repository"]
