"""Resource aggregate repository.

Loads and saves a Resource together with its Sections and Markers. Every
public operation runs in exactly one transaction (``engine.begin()``),
including the reads that validate the (resource, section, marker) path, so no
operation can be observed half-applied. Storage failures are logged and
re-raised as ``PersistenceError``; unresolved paths raise ``NotFoundError``.

Section numbering and marker ordering come from ``marginalia.logic.ordering``.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import bindparam
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from marginalia.logic.errors import NotFoundError, PersistenceError, ValidationError
from marginalia.logic.events import (
    MARKER_CREATED,
    MARKER_DELETED,
    MARKER_UPDATED,
    RESOURCE_CREATED,
    RESOURCE_DELETED,
    RESOURCE_UPDATED,
    SECTION_CREATED,
    SECTION_DELETED,
    SECTION_RENAMED,
    publish,
)
from marginalia.logic.ordering import (
    default_section_title,
    next_order_num,
    next_section_number,
    renumber_after_delete,
    sort_markers,
    sort_sections,
)
from marginalia.models.entities import Marker, Resource, Section
from marginalia.models.kinds import ResourceType
from marginalia.models.payloads import (
    MarkerInput,
    MarkerPatch,
    ResourceCreate,
    ResourceUpdate,
    SectionInput,
)

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


_RESOURCE_COLUMNS = "id, owner_id, name, type, author, source_url, is_public, created_at, updated_at"
_SECTION_COLUMNS = "id, resource_id, title, number, created_at, updated_at"
_MARKER_COLUMNS = "id, section_id, author_id, position, order_num, quote, note, type, created_at, updated_at"


def _resource_from_row(row: Mapping[str, Any], sections: Sequence[Section] = ()) -> Resource:
    return Resource(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        name=str(row["name"]),
        type=str(row["type"]),
        author=row["author"],
        source_url=row["source_url"],
        is_public=bool(row["is_public"]),
        sections=tuple(sort_sections(sections)),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


def _section_from_row(row: Mapping[str, Any], markers: Sequence[Marker] = ()) -> Section:
    return Section(
        id=str(row["id"]),
        resource_id=str(row["resource_id"]),
        title=str(row["title"]),
        number=int(row["number"]),
        markers=tuple(markers),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


def _marker_from_row(row: Mapping[str, Any]) -> Marker:
    return Marker(
        id=str(row["id"]),
        section_id=str(row["section_id"]),
        author_id=row["author_id"],
        position=str(row["position"]),
        order_num=int(row["order_num"]),
        quote=row["quote"],
        note=str(row["note"]),
        type=str(row["type"]),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


class ResourceRepository:
    """Persistence boundary for the Resource -> Section -> Marker tree.

    Instances are cheap and hold no state besides the engine and the
    injectable clock/id factory; the HTTP layer creates one per request.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        clock: Callable[[], int] = now_millis,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.engine = engine
        self._clock = clock
        self._new_id = id_factory

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("resource_repository.%s failed; transaction rolled back", operation, exc_info=True)
            raise PersistenceError(f"{operation} failed") from exc

    # ------------------------------------------------------------------
    # Row loaders (run inside a caller's transaction)
    # ------------------------------------------------------------------

    def _resource_row(self, conn: Connection, resource_id: str) -> Optional[Mapping[str, Any]]:
        return conn.execute(
            sql_text(f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE id = :rid"),
            {"rid": resource_id},
        ).mappings().first()

    def _require_resource_row(self, conn: Connection, resource_id: str) -> Mapping[str, Any]:
        row = self._resource_row(conn, resource_id)
        if row is None:
            raise NotFoundError("Resource not found")
        return row

    def _section_rows(self, conn: Connection, resource_ids: Sequence[str]) -> List[Mapping[str, Any]]:
        if not resource_ids:
            return []
        stmt = sql_text(
            f"SELECT {_SECTION_COLUMNS} FROM sections WHERE resource_id IN :rids ORDER BY resource_id, number"
        ).bindparams(bindparam("rids", expanding=True))
        return list(conn.execute(stmt, {"rids": list(resource_ids)}).mappings().all())

    def _markers_by_section(self, conn: Connection, section_ids: Sequence[str]) -> Dict[str, List[Marker]]:
        grouped: Dict[str, List[Marker]] = {sid: [] for sid in section_ids}
        if not section_ids:
            return grouped
        stmt = sql_text(
            f"SELECT {_MARKER_COLUMNS} FROM markers WHERE section_id IN :sids ORDER BY order_num, id"
        ).bindparams(bindparam("sids", expanding=True))
        for row in conn.execute(stmt, {"sids": list(section_ids)}).mappings():
            grouped.setdefault(str(row["section_id"]), []).append(_marker_from_row(row))
        return grouped

    def _build_resources(
        self, conn: Connection, resource_rows: Sequence[Mapping[str, Any]], include_markers: bool
    ) -> List[Resource]:
        section_rows = self._section_rows(conn, [str(r["id"]) for r in resource_rows])
        markers: Dict[str, List[Marker]] = {}
        if include_markers:
            markers = self._markers_by_section(conn, [str(s["id"]) for s in section_rows])
        sections_by_resource: Dict[str, List[Section]] = {}
        for srow in section_rows:
            section = _section_from_row(srow, markers.get(str(srow["id"]), ()))
            sections_by_resource.setdefault(section.resource_id, []).append(section)
        return [_resource_from_row(r, sections_by_resource.get(str(r["id"]), ())) for r in resource_rows]

    def _load_tree(self, conn: Connection, resource_id: str, include_markers: bool = True) -> Resource:
        row = self._require_resource_row(conn, resource_id)
        return self._build_resources(conn, [row], include_markers)[0]

    def _section_row(self, conn: Connection, resource_id: str, section_id: str) -> Mapping[str, Any]:
        row = conn.execute(
            sql_text(f"SELECT {_SECTION_COLUMNS} FROM sections WHERE id = :sid AND resource_id = :rid"),
            {"sid": section_id, "rid": resource_id},
        ).mappings().first()
        if row is None:
            raise NotFoundError("Section not found")
        return row

    def _marker_row(self, conn: Connection, resource_id: str, section_id: str, marker_id: str) -> Mapping[str, Any]:
        row = conn.execute(
            sql_text(
                """
                SELECT m.id, m.section_id, m.author_id, m.position, m.order_num, m.quote,
                       m.note, m.type, m.created_at, m.updated_at
                FROM markers m
                JOIN sections s ON s.id = m.section_id
                WHERE m.id = :mid AND m.section_id = :sid AND s.resource_id = :rid
                """
            ),
            {"mid": marker_id, "sid": section_id, "rid": resource_id},
        ).mappings().first()
        if row is None:
            raise NotFoundError("Marker not found")
        return row

    def _section_markers(self, conn: Connection, section_id: str) -> List[Marker]:
        return self._markers_by_section(conn, [section_id]).get(section_id, [])

    def _sorted_section_markers(self, conn: Connection, resource_id: str, section_id: str) -> List[Marker]:
        resource_row = self._require_resource_row(conn, resource_id)
        return sort_markers(self._section_markers(conn, section_id), str(resource_row["type"]))

    def _insert_marker(
        self,
        conn: Connection,
        section_id: str,
        author_id: Optional[str],
        data: MarkerInput,
        order_num: int,
        now: int,
    ) -> str:
        marker_id = self._new_id()
        conn.execute(
            sql_text(
                """
                INSERT INTO markers (id, section_id, author_id, position, order_num, quote, note, type, created_at, updated_at)
                VALUES (:id, :sid, :author, :position, :order_num, :quote, :note, :type, :now, :now)
                """
            ),
            {
                "id": marker_id,
                "sid": section_id,
                "author": author_id,
                "position": data.position,
                "order_num": int(order_num),
                "quote": data.quote,
                "note": data.note,
                "type": data.type,
                "now": now,
            },
        )
        return marker_id

    def _insert_section_tree(
        self,
        conn: Connection,
        resource_id: str,
        resource_type: str,
        author_id: Optional[str],
        data: SectionInput,
        number: int,
        now: int,
    ) -> str:
        section_id = self._new_id()
        title = (data.title or "").strip() or default_section_title(resource_type, number)
        conn.execute(
            sql_text(
                """
                INSERT INTO sections (id, resource_id, title, number, created_at, updated_at)
                VALUES (:id, :rid, :title, :number, :now, :now)
                """
            ),
            {"id": section_id, "rid": resource_id, "title": title, "number": int(number), "now": now},
        )
        highest = 0
        for marker_input in data.markers:
            order_num = marker_input.order_num if marker_input.order_num is not None else highest + 1
            self._insert_marker(conn, section_id, author_id, marker_input, order_num, now)
            highest = max(highest, int(order_num))
        return section_id

    def _touch_resource(self, conn: Connection, resource_id: str, now: int) -> None:
        conn.execute(
            sql_text("UPDATE resources SET updated_at = :now WHERE id = :rid"),
            {"now": now, "rid": resource_id},
        )

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def create_resource(self, owner_id: str, payload: ResourceCreate) -> Resource:
        """Insert a resource with its initial sections and markers atomically.

        Sections are numbered 1..N in input order. Input problems are reported
        before the transaction opens.
        """
        errors = []
        if not payload.sections:
            errors.append({"path": "$.sections", "code": "min_items"})
        if payload.type not in ResourceType.ALL:
            errors.append({"path": "$.type", "code": "invalid_enum"})
        if errors:
            raise ValidationError("A resource needs a valid type and at least one section", errors)

        resource_id = self._new_id()
        now = self._clock()
        with self._transaction("create_resource") as conn:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO resources (id, owner_id, name, type, author, source_url, is_public, created_at, updated_at)
                    VALUES (:id, :owner, :name, :type, :author, :source_url, :is_public, :now, :now)
                    """
                ),
                {
                    "id": resource_id,
                    "owner": owner_id,
                    "name": payload.name.strip(),
                    "type": payload.type,
                    "author": payload.author,
                    "source_url": payload.source_url,
                    "is_public": bool(payload.is_public),
                    "now": now,
                },
            )
            for index, section_input in enumerate(payload.sections, start=1):
                self._insert_section_tree(conn, resource_id, payload.type, owner_id, section_input, index, now)
            resource = self._load_tree(conn, resource_id)
        logger.info(
            "resource.created resource_id=%s owner_id=%s sections=%s", resource_id, owner_id, len(resource.sections)
        )
        publish(RESOURCE_CREATED, {"resource_id": resource_id, "owner_id": owner_id})
        return resource

    def get_resource(self, resource_id: str, include_markers: bool = True) -> Resource:
        with self._transaction("get_resource") as conn:
            return self._load_tree(conn, resource_id, include_markers)

    def list_public_resources(self) -> List[Resource]:
        with self._transaction("list_public_resources") as conn:
            rows = conn.execute(
                sql_text(
                    f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE is_public = :pub ORDER BY created_at DESC, id"
                ),
                {"pub": True},
            ).mappings().all()
            return self._build_resources(conn, rows, include_markers=False)

    def list_owned_resources(self, owner_id: str) -> List[Resource]:
        with self._transaction("list_owned_resources") as conn:
            rows = conn.execute(
                sql_text(
                    f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE owner_id = :owner ORDER BY created_at DESC, id"
                ),
                {"owner": owner_id},
            ).mappings().all()
            return self._build_resources(conn, rows, include_markers=False)

    def update_resource(self, resource_id: str, patch: ResourceUpdate) -> Resource:
        """Partially update resource metadata. Sections are never touched."""
        columns = {"name": "name", "type": "type", "author": "author", "source_url": "source_url"}
        values = {col: getattr(patch, field) for field, col in columns.items() if field in patch.model_fields_set}
        if "name" in values:
            values["name"] = str(values["name"]).strip()
        with self._transaction("update_resource") as conn:
            self._require_resource_row(conn, resource_id)
            values["updated_at"] = self._clock()
            assignments = ", ".join(f"{col} = :{col}" for col in values)
            conn.execute(
                sql_text(f"UPDATE resources SET {assignments} WHERE id = :rid"),
                {**values, "rid": resource_id},
            )
            resource = self._load_tree(conn, resource_id)
        logger.info("resource.updated resource_id=%s fields=%s", resource_id, sorted(values))
        publish(RESOURCE_UPDATED, {"resource_id": resource_id})
        return resource

    def set_visibility(self, resource_id: str, is_public: bool) -> Resource:
        with self._transaction("set_visibility") as conn:
            self._require_resource_row(conn, resource_id)
            conn.execute(
                sql_text("UPDATE resources SET is_public = :pub, updated_at = :now WHERE id = :rid"),
                {"pub": bool(is_public), "now": self._clock(), "rid": resource_id},
            )
            resource = self._load_tree(conn, resource_id, include_markers=False)
        logger.info("resource.visibility resource_id=%s is_public=%s", resource_id, bool(is_public))
        publish(RESOURCE_UPDATED, {"resource_id": resource_id, "is_public": bool(is_public)})
        return resource

    def delete_resource(self, resource_id: str) -> None:
        """Delete comments, markers, sections and the resource row in one transaction."""
        with self._transaction("delete_resource") as conn:
            self._require_resource_row(conn, resource_id)
            params = {"rid": resource_id}
            conn.execute(
                sql_text(
                    """
                    DELETE FROM comments WHERE marker_id IN (
                        SELECT m.id FROM markers m JOIN sections s ON s.id = m.section_id WHERE s.resource_id = :rid
                    )
                    """
                ),
                params,
            )
            conn.execute(
                sql_text("DELETE FROM markers WHERE section_id IN (SELECT id FROM sections WHERE resource_id = :rid)"),
                params,
            )
            conn.execute(sql_text("DELETE FROM sections WHERE resource_id = :rid"), params)
            conn.execute(sql_text("DELETE FROM resources WHERE id = :rid"), params)
        logger.info("resource.deleted resource_id=%s", resource_id)
        publish(RESOURCE_DELETED, {"resource_id": resource_id})

    def resource_for_marker(self, marker_id: str) -> Resource:
        """Return the (marker-less) resource that owns ``marker_id``."""
        with self._transaction("resource_for_marker") as conn:
            row = conn.execute(
                sql_text(
                    """
                    SELECT s.resource_id FROM markers m JOIN sections s ON s.id = m.section_id
                    WHERE m.id = :mid
                    """
                ),
                {"mid": marker_id},
            ).first()
            if row is None:
                raise NotFoundError("Marker not found")
            return self._load_tree(conn, str(row[0]), include_markers=False)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def add_section(
        self, resource_id: str, payload: SectionInput, author_id: Optional[str] = None
    ) -> Tuple[Section, List[Section]]:
        """Append a section numbered after the current maximum.

        Returns the new section and the resource's full section list, both
        read in the inserting transaction.
        """
        with self._transaction("add_section") as conn:
            resource_row = self._require_resource_row(conn, resource_id)
            existing = [_section_from_row(r) for r in self._section_rows(conn, [resource_id])]
            number = next_section_number(existing)
            now = self._clock()
            section_id = self._insert_section_tree(
                conn, resource_id, str(resource_row["type"]), author_id, payload, number, now
            )
            self._touch_resource(conn, resource_id, now)
            sections = list(self._load_tree(conn, resource_id).sections)
            section = next(s for s in sections if s.id == section_id)
        logger.info("resource.section.created resource_id=%s section_id=%s number=%s", resource_id, section_id, number)
        publish(SECTION_CREATED, {"resource_id": resource_id, "section_id": section_id, "number": number})
        return section, sections

    def rename_section(self, resource_id: str, section_id: str, title: str) -> Section:
        with self._transaction("rename_section") as conn:
            self._section_row(conn, resource_id, section_id)
            conn.execute(
                sql_text("UPDATE sections SET title = :title, updated_at = :now WHERE id = :sid AND resource_id = :rid"),
                {"title": title.strip(), "now": self._clock(), "sid": section_id, "rid": resource_id},
            )
            section = _section_from_row(
                self._section_row(conn, resource_id, section_id), self._section_markers(conn, section_id)
            )
        logger.info("resource.section.renamed resource_id=%s section_id=%s", resource_id, section_id)
        publish(SECTION_RENAMED, {"resource_id": resource_id, "section_id": section_id})
        return section

    def delete_section(self, resource_id: str, section_id: str) -> List[Section]:
        """Delete a section and close the numbering gap it leaves.

        The row delete and the renumbering of later siblings share a single
        transaction; the remaining sections (with markers) are returned in
        number order.
        """
        with self._transaction("delete_section") as conn:
            deleted = _section_from_row(self._section_row(conn, resource_id, section_id))
            siblings = [_section_from_row(r) for r in self._section_rows(conn, [resource_id])]
            params = {"sid": section_id}
            conn.execute(
                sql_text("DELETE FROM comments WHERE marker_id IN (SELECT id FROM markers WHERE section_id = :sid)"),
                params,
            )
            conn.execute(sql_text("DELETE FROM markers WHERE section_id = :sid"), params)
            conn.execute(sql_text("DELETE FROM sections WHERE id = :sid"), params)
            now = self._clock()
            moves = renumber_after_delete(siblings, deleted.number)
            for moved_id, new_number in moves:
                conn.execute(
                    sql_text(
                        "UPDATE sections SET number = :number, updated_at = :now WHERE id = :sid AND resource_id = :rid"
                    ),
                    {"number": int(new_number), "now": now, "sid": moved_id, "rid": resource_id},
                )
            self._touch_resource(conn, resource_id, now)
            remaining = list(self._load_tree(conn, resource_id).sections)
        logger.info(
            "resource.section.deleted resource_id=%s section_id=%s number=%s renumbered=%s",
            resource_id,
            section_id,
            deleted.number,
            len(moves),
        )
        publish(SECTION_DELETED, {"resource_id": resource_id, "section_id": section_id, "renumbered": len(moves)})
        return remaining

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------

    def list_markers(self, resource_id: str, section_id: str) -> List[Marker]:
        """Markers of a section in display order for the resource type."""
        with self._transaction("list_markers") as conn:
            self._section_row(conn, resource_id, section_id)
            return self._sorted_section_markers(conn, resource_id, section_id)

    def add_marker(
        self, resource_id: str, section_id: str, author_id: Optional[str], payload: MarkerInput
    ) -> Tuple[Marker, List[Marker]]:
        """Insert a marker; ``order_num`` defaults to one past the section's maximum.

        Returns the marker and the section's markers in display order.
        """
        with self._transaction("add_marker") as conn:
            self._section_row(conn, resource_id, section_id)
            order_num = payload.order_num
            if order_num is None:
                order_num = next_order_num(self._section_markers(conn, section_id))
            marker_id = self._insert_marker(conn, section_id, author_id, payload, order_num, self._clock())
            marker = _marker_from_row(self._marker_row(conn, resource_id, section_id, marker_id))
            markers = self._sorted_section_markers(conn, resource_id, section_id)
        logger.info(
            "resource.marker.created resource_id=%s section_id=%s marker_id=%s order_num=%s",
            resource_id,
            section_id,
            marker_id,
            order_num,
        )
        publish(MARKER_CREATED, {"resource_id": resource_id, "section_id": section_id, "marker_id": marker_id})
        return marker, markers

    def update_marker(
        self, resource_id: str, section_id: str, marker_id: str, patch: MarkerPatch
    ) -> Tuple[Marker, List[Marker]]:
        """Partial update of position/quote/note/type."""
        values = {
            field: getattr(patch, field)
            for field in ("position", "quote", "note", "type")
            if field in patch.model_fields_set
        }
        with self._transaction("update_marker") as conn:
            self._marker_row(conn, resource_id, section_id, marker_id)
            values["updated_at"] = self._clock()
            assignments = ", ".join(f"{col} = :{col}" for col in values)
            conn.execute(
                sql_text(f"UPDATE markers SET {assignments} WHERE id = :mid AND section_id = :sid"),
                {**values, "mid": marker_id, "sid": section_id},
            )
            marker = _marker_from_row(self._marker_row(conn, resource_id, section_id, marker_id))
            markers = self._sorted_section_markers(conn, resource_id, section_id)
        logger.info(
            "resource.marker.updated resource_id=%s section_id=%s marker_id=%s fields=%s",
            resource_id,
            section_id,
            marker_id,
            sorted(values),
        )
        publish(MARKER_UPDATED, {"resource_id": resource_id, "section_id": section_id, "marker_id": marker_id})
        return marker, markers

    def delete_marker(self, resource_id: str, section_id: str, marker_id: str) -> List[Marker]:
        """Hard delete; sibling ``order_num`` values are left as they are.

        Returns the section's remaining markers in display order.
        """
        with self._transaction("delete_marker") as conn:
            self._marker_row(conn, resource_id, section_id, marker_id)
            conn.execute(sql_text("DELETE FROM comments WHERE marker_id = :mid"), {"mid": marker_id})
            conn.execute(
                sql_text("DELETE FROM markers WHERE id = :mid AND section_id = :sid"),
                {"mid": marker_id, "sid": section_id},
            )
            markers = self._sorted_section_markers(conn, resource_id, section_id)
        logger.info(
            "resource.marker.deleted resource_id=%s section_id=%s marker_id=%s", resource_id, section_id, marker_id
        )
        publish(MARKER_DELETED, {"resource_id": resource_id, "section_id": section_id, "marker_id": marker_id})
        return markers


__all__ = ["ResourceRepository", "now_millis", "new_id"]
