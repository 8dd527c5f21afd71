"""Success envelope for JSON responses: ``{"success": true, "data": ...}``."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse


def success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


__all__ = ["success"]
