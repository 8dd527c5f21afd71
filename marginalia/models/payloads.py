"""Pydantic models for request bodies.

Field names follow the wire contract (camelCase aliases). Route handlers pass
raw JSON through ``marginalia.logic.validation.parse_payload`` so that model
failures surface as field-level ``ValidationError`` details.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, field_validator

ResourceTypeLiteral = Literal["book", "podcast", "article", "course"]
MarkerTypeLiteral = Literal["general", "concept", "question", "summary"]


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MarkerInput(_Payload):
    position: str = Field(min_length=1)
    order_num: Optional[int] = Field(default=None, validation_alias=AliasChoices("orderNum", "order", "order_num"))
    quote: Optional[str] = None
    note: str
    type: MarkerTypeLiteral = "general"

    @field_validator("position")
    @classmethod
    def position_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("position must not be blank")
        return v.strip()


class MarkerPatch(_Payload):
    position: Optional[str] = Field(default=None, min_length=1)
    quote: Optional[str] = None
    note: Optional[str] = None
    type: Optional[MarkerTypeLiteral] = None

    @field_validator("note", "type")
    @classmethod
    def not_null(cls, v):  # type: ignore[no-untyped-def]
        # Only runs for values present in the body; quote alone may be cleared
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("position")
    @classmethod
    def position_not_blank(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("position must not be blank")
        return v.strip()


class SectionInput(_Payload):
    title: Optional[str] = None
    markers: List[MarkerInput] = Field(default_factory=list)


class SectionRename(_Payload):
    title: str = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class ResourceCreate(_Payload):
    name: str = Field(min_length=1)
    type: ResourceTypeLiteral
    author: Optional[str] = None
    source_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("sourceUrl", "source_url"))
    is_public: StrictBool = Field(default=False, validation_alias=AliasChoices("isPublic", "is_public"))
    # Emptiness is enforced by the repository before any write
    sections: List[SectionInput] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class ResourceUpdate(_Payload):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[ResourceTypeLiteral] = None
    author: Optional[str] = None
    source_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("sourceUrl", "source_url"))

    @field_validator("type")
    @classmethod
    def not_null(cls, v):  # type: ignore[no-untyped-def]
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class VisibilityUpdate(_Payload):
    is_public: StrictBool = Field(validation_alias=AliasChoices("isPublic", "is_public"))


class CommentCreate(_Payload):
    marker_id: str = Field(min_length=1, validation_alias=AliasChoices("markerId", "marker_id"))
    content: str = Field(min_length=1, max_length=2000)


class CommentUpdate(_Payload):
    content: str = Field(min_length=1, max_length=2000)


__all__ = [
    "MarkerInput",
    "MarkerPatch",
    "SectionInput",
    "SectionRename",
    "ResourceCreate",
    "ResourceUpdate",
    "VisibilityUpdate",
    "CommentCreate",
    "CommentUpdate",
]
