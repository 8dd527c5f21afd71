"""Marginalia: shared reading notes organised by resource, section and marker.

This package exposes the FastAPI application factory. Business logic lives in
``marginalia/logic/``, route handlers in ``marginalia/routes/`` and the
client-side cache mirror in ``marginalia/client/``.
"""

from __future__ import annotations

from marginalia.main import create_app

__all__ = ["create_app"]
