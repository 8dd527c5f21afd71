"""APIRouter registration for the Marginalia service."""

from __future__ import annotations

from fastapi import APIRouter

from marginalia.routes.comments import router as comments_router
from marginalia.routes.markers import router as markers_router
from marginalia.routes.resources import router as resources_router
from marginalia.routes.sections import router as sections_router

api_router = APIRouter()
api_router.include_router(resources_router)
api_router.include_router(sections_router)
api_router.include_router(markers_router)
api_router.include_router(comments_router)

__all__ = ["api_router"]
