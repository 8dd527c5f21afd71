"""Requester identity resolution.

Sessions are handled upstream; the authenticated user id arrives in a
configurable request header (``X-User-Id`` by default). A missing or blank
header means an anonymous requester.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from marginalia.logic.errors import UnauthenticatedError

DEFAULT_IDENTITY_HEADER = "X-User-Id"


def get_requester_id(request: Request) -> Optional[str]:
    """FastAPI dependency: the requester's user id, or None when anonymous."""
    header = getattr(request.app.state, "identity_header", DEFAULT_IDENTITY_HEADER)
    value = (request.headers.get(header) or "").strip()
    return value or None


def require_requester_id(request: Request) -> str:
    """FastAPI dependency for routes that need an authenticated requester."""
    requester_id = get_requester_id(request)
    if requester_id is None:
        raise UnauthenticatedError()
    return requester_id


__all__ = ["DEFAULT_IDENTITY_HEADER", "get_requester_id", "require_requester_id"]
