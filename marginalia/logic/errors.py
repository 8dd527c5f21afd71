"""Domain error taxonomy.

Repositories raise NotFoundError/PersistenceError, the visibility gate and
route layer add ForbiddenError/UnauthenticatedError/ValidationError. The HTTP
layer maps every DomainError to a problem+json response via ``status`` and
``code``; nothing else needs to know about status codes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DomainError(Exception):
    status: int = 500
    code: str = "INTERNAL_ERROR"
    title: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.title
        super().__init__(self.message)

    def to_problem(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "title": self.title,
            "status": self.status,
            "code": self.code,
        }


class ValidationError(DomainError):
    status = 400
    code = "VALIDATION_ERROR"
    title = "Validation Error"

    def __init__(self, message: str | None = None, errors: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message)
        self.errors: List[Dict[str, str]] = list(errors or [])

    def to_problem(self) -> Dict[str, Any]:
        problem = super().to_problem()
        problem["errors"] = self.errors
        return problem


class UnauthenticatedError(DomainError):
    status = 401
    code = "UNAUTHENTICATED"
    title = "Unauthorized"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Authentication required")


class ForbiddenError(DomainError):
    status = 403
    code = "FORBIDDEN"
    title = "Forbidden"


class NotFoundError(DomainError):
    status = 404
    code = "NOT_FOUND"
    title = "Not Found"


class PersistenceError(DomainError):
    """Storage failure. The message is never shown to clients."""

    status = 500
    code = "PERSISTENCE_ERROR"
    title = "Internal Server Error"

    def to_problem(self) -> Dict[str, Any]:
        problem = super().to_problem()
        problem["error"] = self.title
        return problem


__all__ = [
    "DomainError",
    "ValidationError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "PersistenceError",
]
