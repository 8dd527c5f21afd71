"""Comment data access helpers.

Comments hang off markers and carry no ordering invariant beyond oldest-first
listing. Authorization is decided by the caller; this module only enforces
that referenced rows exist.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Mapping

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from marginalia.logic.errors import NotFoundError, PersistenceError
from marginalia.logic.events import COMMENT_CREATED, COMMENT_DELETED, COMMENT_UPDATED, publish
from marginalia.logic.repository_resources import new_id, now_millis
from marginalia.models.entities import Comment

logger = logging.getLogger(__name__)

_COLUMNS = "id, marker_id, author_id, content, created_at, updated_at"


def _comment_from_row(row: Mapping[str, Any]) -> Comment:
    return Comment(
        id=str(row["id"]),
        marker_id=str(row["marker_id"]),
        author_id=str(row["author_id"]),
        content=str(row["content"]),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


class CommentRepository:
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
            logger.error("comment_repository.%s failed; transaction rolled back", operation, exc_info=True)
            raise PersistenceError(f"{operation} failed") from exc

    def _require(self, conn: Connection, comment_id: str) -> Comment:
        row = conn.execute(
            sql_text(f"SELECT {_COLUMNS} FROM comments WHERE id = :cid"), {"cid": comment_id}
        ).mappings().first()
        if row is None:
            raise NotFoundError("Comment not found")
        return _comment_from_row(row)

    def get_comment(self, comment_id: str) -> Comment:
        with self._transaction("get_comment") as conn:
            return self._require(conn, comment_id)

    def list_for_marker(self, marker_id: str) -> List[Comment]:
        with self._transaction("list_for_marker") as conn:
            rows = conn.execute(
                sql_text(f"SELECT {_COLUMNS} FROM comments WHERE marker_id = :mid ORDER BY created_at, id"),
                {"mid": marker_id},
            ).mappings().all()
            return [_comment_from_row(r) for r in rows]

    def create_comment(self, marker_id: str, author_id: str, content: str) -> Comment:
        comment_id = self._new_id()
        with self._transaction("create_comment") as conn:
            exists = conn.execute(sql_text("SELECT 1 FROM markers WHERE id = :mid"), {"mid": marker_id}).first()
            if exists is None:
                raise NotFoundError("Marker not found")
            now = self._clock()
            conn.execute(
                sql_text(
                    """
                    INSERT INTO comments (id, marker_id, author_id, content, created_at, updated_at)
                    VALUES (:id, :mid, :author, :content, :now, :now)
                    """
                ),
                {"id": comment_id, "mid": marker_id, "author": author_id, "content": content, "now": now},
            )
            comment = self._require(conn, comment_id)
        logger.info("comment.created comment_id=%s marker_id=%s", comment_id, marker_id)
        publish(COMMENT_CREATED, {"comment_id": comment_id, "marker_id": marker_id})
        return comment

    def update_comment(self, comment_id: str, content: str) -> Comment:
        with self._transaction("update_comment") as conn:
            self._require(conn, comment_id)
            conn.execute(
                sql_text("UPDATE comments SET content = :content, updated_at = :now WHERE id = :cid"),
                {"content": content, "now": self._clock(), "cid": comment_id},
            )
            comment = self._require(conn, comment_id)
        publish(COMMENT_UPDATED, {"comment_id": comment_id})
        return comment

    def delete_comment(self, comment_id: str) -> None:
        with self._transaction("delete_comment") as conn:
            self._require(conn, comment_id)
            conn.execute(sql_text("DELETE FROM comments WHERE id = :cid"), {"cid": comment_id})
        logger.info("comment.deleted comment_id=%s", comment_id)
        publish(COMMENT_DELETED, {"comment_id": comment_id})


__all__ = ["CommentRepository"]
