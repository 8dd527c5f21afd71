"""Request payload validation.

Converts pydantic failures into the domain ``ValidationError`` with
field-level detail shaped as ``{"path": "$.sections[0].title", "code": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from marginalia.logic.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# pydantic error type -> stable error code exposed to clients
_CODES = {
    "missing": "missing",
    "literal_error": "invalid_enum",
    "string_too_short": "too_short",
    "string_too_long": "too_long",
    "string_type": "invalid_type",
    "int_type": "invalid_type",
    "int_parsing": "invalid_type",
    "bool_type": "invalid_type",
    "list_type": "invalid_type",
    "model_type": "invalid_type",
    "model_attributes_type": "invalid_type",
    "dict_type": "invalid_type",
    "value_error": "invalid_value",
}


def json_path(loc: Sequence[Any]) -> str:
    path = "$"
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def field_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    return [
        {"path": json_path(err.get("loc", ())), "code": _CODES.get(str(err.get("type")), str(err.get("type")))}
        for err in exc.errors()
    ]


def parse_payload(model: Type[T], payload: Any) -> T:
    """Validate a decoded JSON body against ``model``.

    A missing or non-object body is reported against ``$``.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object", [{"path": "$", "code": "invalid_type"}])
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = field_errors(exc)
        logger.info("payload_validation_failed model=%s errors=%s", model.__name__, errors)
        raise ValidationError("Invalid request body", errors) from exc


__all__ = ["json_path", "field_errors", "parse_payload"]
