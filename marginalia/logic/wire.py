"""Serialization boundary between canonical entities and the JSON contract.

One mapping function per direction per entity. Internal names are snake_case
with epoch-millisecond timestamps; the wire uses camelCase and ISO-8601 UTC
strings. The marker insertion tiebreaker is ``order_num`` internally and
``orderNum`` on the wire; ``order`` is accepted on input only.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from marginalia.logic.ordering import sort_markers, sort_sections
from marginalia.models.entities import Comment, Marker, Resource, Section


def iso_from_millis(value: int | None) -> Optional[str]:
    if value is None:
        return None
    dt = datetime.fromtimestamp(int(value) / 1000.0, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def millis_from_iso(value: str | int | None) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def marker_to_wire(marker: Marker) -> Dict[str, Any]:
    return {
        "id": marker.id,
        "sectionId": marker.section_id,
        "authorId": marker.author_id,
        "position": marker.position,
        "orderNum": marker.order_num,
        "quote": marker.quote,
        "note": marker.note,
        "type": marker.type,
        "createdAt": iso_from_millis(marker.created_at),
        "updatedAt": iso_from_millis(marker.updated_at),
    }


def section_to_wire(section: Section, resource_type: str | None = None, include_markers: bool = True) -> Dict[str, Any]:
    markers = list(section.markers)
    if resource_type is not None:
        markers = sort_markers(markers, resource_type)
    return {
        "id": section.id,
        "resourceId": section.resource_id,
        "title": section.title,
        "number": section.number,
        "markers": [marker_to_wire(m) for m in markers] if include_markers else [],
        "createdAt": iso_from_millis(section.created_at),
        "updatedAt": iso_from_millis(section.updated_at),
    }


def resource_to_wire(resource: Resource, include_markers: bool = True) -> Dict[str, Any]:
    return {
        "id": resource.id,
        "ownerId": resource.owner_id,
        "name": resource.name,
        "type": resource.type,
        "author": resource.author,
        "sourceUrl": resource.source_url,
        "isPublic": bool(resource.is_public),
        "sections": [
            section_to_wire(s, resource.type, include_markers=include_markers)
            for s in sort_sections(resource.sections)
        ],
        "createdAt": iso_from_millis(resource.created_at),
        "updatedAt": iso_from_millis(resource.updated_at),
    }


def comment_to_wire(comment: Comment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "markerId": comment.marker_id,
        "authorId": comment.author_id,
        "content": comment.content,
        "createdAt": iso_from_millis(comment.created_at),
        "updatedAt": iso_from_millis(comment.updated_at),
    }


def marker_from_wire(data: Mapping[str, Any]) -> Marker:
    order_num = data.get("orderNum")
    if order_num is None:
        order_num = data.get("order", 0)
    return Marker(
        id=str(data["id"]),
        section_id=str(data.get("sectionId") or ""),
        author_id=data.get("authorId"),
        position=str(data.get("position") or ""),
        order_num=int(order_num or 0),
        quote=data.get("quote"),
        note=str(data.get("note") or ""),
        type=str(data.get("type") or "general"),
        created_at=millis_from_iso(data.get("createdAt")),
        updated_at=millis_from_iso(data.get("updatedAt")),
    )


def section_from_wire(data: Mapping[str, Any]) -> Section:
    return Section(
        id=str(data["id"]),
        resource_id=str(data.get("resourceId") or ""),
        title=str(data.get("title") or ""),
        number=int(data["number"]),
        markers=tuple(marker_from_wire(m) for m in (data.get("markers") or [])),
        created_at=millis_from_iso(data.get("createdAt")),
        updated_at=millis_from_iso(data.get("updatedAt")),
    )


def resource_from_wire(data: Mapping[str, Any]) -> Resource:
    return Resource(
        id=str(data["id"]),
        owner_id=str(data.get("ownerId") or ""),
        name=str(data.get("name") or ""),
        type=str(data.get("type") or ""),
        author=data.get("author"),
        source_url=data.get("sourceUrl"),
        is_public=bool(data.get("isPublic", False)),
        sections=tuple(sort_sections(section_from_wire(s) for s in (data.get("sections") or []))),
        created_at=millis_from_iso(data.get("createdAt")),
        updated_at=millis_from_iso(data.get("updatedAt")),
    )


def comment_from_wire(data: Mapping[str, Any]) -> Comment:
    return Comment(
        id=str(data["id"]),
        marker_id=str(data.get("markerId") or ""),
        author_id=str(data.get("authorId") or ""),
        content=str(data.get("content") or ""),
        created_at=millis_from_iso(data.get("createdAt")),
        updated_at=millis_from_iso(data.get("updatedAt")),
    )


__all__ = [
    "iso_from_millis",
    "millis_from_iso",
    "marker_to_wire",
    "section_to_wire",
    "resource_to_wire",
    "comment_to_wire",
    "marker_from_wire",
    "section_from_wire",
    "resource_from_wire",
    "comment_from_wire",
]
