"""Section numbering and marker ordering rules.

Single source of truth for ordering, imported by the repository (server side)
and by ``marginalia.client.store`` (client mirror). Everything here is pure:
no I/O, no logging, no exceptions for well-typed input.

Section numbers within a resource are always exactly 1..N. Marker
``order_num`` is only an insertion tiebreaker and may contain gaps.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple, TypeVar

from marginalia.models.kinds import ResourceType

S = TypeVar("S")
M = TypeVar("M")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def next_section_number(existing: Iterable) -> int:
    """Return ``max(number) + 1`` over ``existing``, or 1 when empty."""
    numbers = [int(s.number) for s in existing]
    return max(numbers) + 1 if numbers else 1


def renumber_after_delete(existing: Iterable, deleted_number: int) -> List[Tuple[str, int]]:
    """Return ``(section_id, new_number)`` for every section after the deleted one.

    Sections numbered below ``deleted_number`` are left out since they do not
    move. The result is ascending by old number so callers can apply it row by
    row without colliding on a unique (resource, number) index.
    """
    later = sorted((s for s in existing if int(s.number) > int(deleted_number)), key=lambda s: int(s.number))
    return [(s.id, int(s.number) - 1) for s in later]


def sort_sections(sections: Iterable[S]) -> List[S]:
    return sorted(sections, key=lambda s: int(s.number))  # type: ignore[attr-defined]


def apply_section_delete(sections: Sequence[S], section_id: str) -> List[S]:
    """Remove ``section_id`` and renumber the later siblings.

    Works on frozen dataclass records (uses ``dataclasses.replace``). Returns
    the sections sorted by number. An unknown id returns the input sorted and
    unchanged.
    """
    target = next((s for s in sections if s.id == section_id), None)  # type: ignore[attr-defined]
    if target is None:
        return sort_sections(sections)
    moves = dict(renumber_after_delete(sections, target.number))  # type: ignore[attr-defined]
    remaining = []
    for s in sections:
        if s.id == section_id:  # type: ignore[attr-defined]
            continue
        new_number = moves.get(s.id)  # type: ignore[attr-defined]
        remaining.append(replace(s, number=new_number) if new_number is not None else s)
    return sort_sections(remaining)


def is_contiguous(sections: Iterable) -> bool:
    numbers = sorted(int(s.number) for s in sections)
    return numbers == list(range(1, len(numbers) + 1))


def next_order_num(markers: Iterable) -> int:
    """Return ``max(order_num) + 1`` over ``markers``, or 1 when empty."""
    values = [int(m.order_num) for m in markers]
    return max(values) + 1 if values else 1


def position_as_int(position: str | None) -> int:
    """Parse the leading integer of a page position; non-numeric yields 0.

    Leading whitespace and sign are allowed, trailing text is ignored
    ("12a" -> 12, "p12" -> 0).
    """
    match = _LEADING_INT.match(position or "")
    return int(match.group(1)) if match else 0


def marker_sort_key(marker, resource_type: str):
    if resource_type in ResourceType.PAGED:
        return (position_as_int(marker.position), int(marker.order_num))
    # Timestamp positions compare as plain strings: "10:00" < "9:00".
    return (str(marker.position or ""), int(marker.order_num))


def sort_markers(markers: Iterable[M], resource_type: str) -> List[M]:
    """Display order for a section's markers.

    Books and articles sort numerically by page; every other type sorts
    lexicographically by position. Equal positions fall back to ``order_num``.
    """
    return sorted(markers, key=lambda m: marker_sort_key(m, resource_type))


def default_section_title(resource_type: str, number: int) -> str:
    if resource_type == ResourceType.BOOK:
        return f"Chapter {number}"
    if resource_type == ResourceType.PODCAST:
        return f"Hour {number}"
    return f"Section {number}"


__all__ = [
    "next_section_number",
    "renumber_after_delete",
    "sort_sections",
    "apply_section_delete",
    "is_contiguous",
    "next_order_num",
    "position_as_int",
    "marker_sort_key",
    "sort_markers",
    "default_section_title",
]
