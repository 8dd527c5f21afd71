"""Problem+JSON exception handlers.

Every error leaves the service as ``application/problem+json`` with the body
``{"success": false, "error": <message>, "title", "status", "code"}``;
validation failures add ``errors`` with field-level detail. Storage and
unexpected failures are logged and reported without internal detail.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from marginalia.logic.errors import DomainError, PersistenceError
from marginalia.logic.validation import json_path

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(problem: Dict[str, Any], headers: Dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        problem,
        status_code=int(problem.get("status", 500)),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("persistence_error path=%s detail=%s", request.url.path, exc.message)
    else:
        logger.info(
            "domain_error path=%s status=%s code=%s message=%s",
            request.url.path,
            exc.status,
            exc.code,
            exc.message,
        )
    return problem_response(exc.to_problem())


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        # Drop the FastAPI source prefix ("body", "path", ...)
        if loc and loc[0] in {"body", "path", "query", "header"}:
            loc = loc[1:]
        code = "invalid_json" if str(err.get("type")) == "json_invalid" else str(err.get("type"))
        errors.append({"path": json_path(loc), "code": code})
    problem = {
        "success": False,
        "error": "Invalid request",
        "title": "Validation Error",
        "status": 400,
        "code": "VALIDATION_ERROR",
        "errors": errors,
    }
    logger.info("request_validation_failed path=%s errors=%s", request.url.path, errors)
    return problem_response(problem)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status = int(getattr(exc, "status_code", 500) or 500)
    problem = {
        "success": False,
        "error": str(exc.detail) if exc.detail else "Error",
        "title": "Error",
        "status": status,
        "code": f"HTTP_{status}",
    }
    headers = exc.headers if isinstance(getattr(exc, "headers", None), dict) else None
    return problem_response(problem, headers=headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    problem = {
        "success": False,
        "error": "Internal Server Error",
        "title": "Internal Server Error",
        "status": 500,
        "code": "INTERNAL_ERROR",
    }
    return problem_response(problem)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_domain_error",
    "handle_request_validation_error",
    "handle_http_exception",
    "handle_unexpected_error",
]
