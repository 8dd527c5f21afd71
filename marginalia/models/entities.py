"""Canonical entity records shared by the API layer and the client mirror.

These are the only definitions of Resource/Section/Marker/Comment in the
project. Field names are the internal (snake_case) names; the JSON contract is
produced exclusively by ``marginalia.logic.wire``. Timestamps are epoch
milliseconds.

Records are frozen so the client store can swap whole subtrees without
aliasing earlier states.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from marginalia.models.kinds import MarkerType


@dataclass(frozen=True)
class Marker:
    id: str
    section_id: str
    position: str
    order_num: int
    note: str
    type: str = MarkerType.GENERAL
    quote: Optional[str] = None
    author_id: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class Section:
    id: str
    resource_id: str
    title: str
    number: int
    markers: Tuple[Marker, ...] = field(default_factory=tuple)
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class Resource:
    id: str
    owner_id: str
    name: str
    type: str
    is_public: bool = False
    author: Optional[str] = None
    source_url: Optional[str] = None
    sections: Tuple[Section, ...] = field(default_factory=tuple)
    created_at: int = 0
    updated_at: int = 0

    def find_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


@dataclass(frozen=True)
class Comment:
    id: str
    marker_id: str
    author_id: str
    content: str
    created_at: int = 0
    updated_at: int = 0


__all__ = ["Marker", "Section", "Resource", "Comment"]
